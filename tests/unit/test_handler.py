import json
import unittest

from nebula.api.handler import CONFIG_ERROR_MESSAGE, INTERNAL_ERROR_MESSAGE, SolveHandler, SolveInput
from nebula.llm.client import TransportError
from nebula.utils.config_loader import ServiceConfig, load_prompt_templates
from nebula.utils.logger import JsonFormatter
from tests.mocks.mock_llm_responses import PLAIN_TEXT_RESPONSE, SOLVED_RESPONSE


class _StubClient:
    def __init__(self, response=None, error: Exception = None) -> None:
        self.response = response
        self.error = error
        self.payloads = []

    async def generate(self, payload):  # noqa: ANN001, ANN201 - test double
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.response


class SolveHandlerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.templates = load_prompt_templates()

    def _handler(self, client: _StubClient, **config) -> SolveHandler:
        values = {"api_key": "test-key"}
        values.update(config)
        return SolveHandler(config=ServiceConfig(**values), templates=self.templates, client=client)

    async def test_missing_key_never_calls_upstream(self) -> None:
        stub = _StubClient(SOLVED_RESPONSE)
        result = await self._handler(stub, api_key="   ").handle(SolveInput(text="2+2"))
        self.assertEqual(result.outcome, "config_error")
        self.assertEqual(result.status_code, 500)
        self.assertEqual(result.body, {"raw": CONFIG_ERROR_MESSAGE})
        self.assertEqual(stub.payloads, [])

    async def test_image_and_language_reach_payload(self) -> None:
        stub = _StubClient(SOLVED_RESPONSE)
        result = await self._handler(stub).handle(SolveInput(text="", image="aGVsbG8=", language="hi"))
        self.assertEqual(result.outcome, "parsed_steps")
        parts = stub.payloads[0]["contents"][0]["parts"]
        self.assertEqual([list(part.keys())[0] for part in parts], ["text", "inline_data"])
        self.assertIn(self.templates.language_instructions["hi"], parts[0]["text"])
        self.assertIn(self.templates.default_problem, parts[0]["text"])
        self.assertEqual(parts[1]["inline_data"], {"mime_type": "image/jpeg", "data": "aGVsbG8="})

    async def test_structured_output_follows_config(self) -> None:
        stub = _StubClient(SOLVED_RESPONSE)
        await self._handler(stub, structured_output=False).handle(SolveInput(text="1+1"))
        self.assertNotIn("generation_config", stub.payloads[0])

    async def test_unparsable_text_falls_back_to_raw(self) -> None:
        result = await self._handler(_StubClient(PLAIN_TEXT_RESPONSE)).handle(SolveInput(text="?"))
        self.assertEqual(result.outcome, "raw_fallback")
        self.assertEqual(result.body, {"raw": "The answer is 42, but I could not format it."})

    async def test_transport_error_is_hidden(self) -> None:
        stub = _StubClient(error=TransportError("secret detail"))
        with self.assertLogs("nebula.api.handler", level="ERROR") as logs:
            result = await self._handler(stub).handle(SolveInput(text="2+2"), request_id="req-1")
        self.assertEqual(result.outcome, "server_error")
        self.assertEqual(result.status_code, 500)
        self.assertEqual(result.body, {"raw": INTERNAL_ERROR_MESSAGE})
        self.assertNotIn("secret detail", str(result.body))
        self.assertTrue(any("solve_failed request_id=req-1" in line for line in logs.output))

    async def test_log_records_carry_request_id(self) -> None:
        with self.assertLogs("nebula.api.handler", level="INFO") as logs:
            await self._handler(_StubClient(SOLVED_RESPONSE)).handle(SolveInput(text="2+2"), request_id="req-9")
        self.assertEqual([record.extra for record in logs.records], [{"request_id": "req-9"}] * 2)
        payload = json.loads(JsonFormatter().format(logs.records[-1]))
        self.assertEqual(payload["request_id"], "req-9")

    async def test_unexpected_response_shape_is_server_error(self) -> None:
        result = await self._handler(_StubClient({"candidates": "oops"})).handle(SolveInput(text="2+2"))
        self.assertEqual(result.outcome, "server_error")
        self.assertEqual(result.status_code, 500)


if __name__ == "__main__":
    unittest.main()
