import json
import unittest

import httpx

from nebula.llm.client import GeminiClient, TransportError, UpstreamResponseError
from nebula.utils.config_loader import ServiceConfig
from tests.mocks.mock_llm_responses import RATE_LIMITED_RESPONSE, SOLVED_RESPONSE


def _config(**overrides) -> ServiceConfig:
    values = {"api_key": "test-key", "model": "gemini-test", "api_base": "https://gemini.test/v1beta"}
    values.update(overrides)
    return ServiceConfig(**values)


class GeminiClientTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_posts_payload_with_key_query_param(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=SOLVED_RESPONSE)

        client = GeminiClient(_config(), transport=httpx.MockTransport(handler))
        payload = {"contents": [{"parts": [{"text": "hi"}]}]}
        response = await client.generate(payload)

        self.assertEqual(response, SOLVED_RESPONSE)
        self.assertEqual(len(seen), 1)
        request = seen[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/v1beta/models/gemini-test:generateContent")
        self.assertEqual(request.url.params["key"], "test-key")
        self.assertEqual(json.loads(request.content), payload)

    async def test_error_status_is_decoded_not_raised(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(429, json=RATE_LIMITED_RESPONSE))
        client = GeminiClient(_config(), transport=transport)
        response = await client.generate({"contents": []})
        self.assertEqual(response["error"]["code"], 429)

    async def test_network_failure_raises_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = GeminiClient(_config(), transport=httpx.MockTransport(handler))
        with self.assertRaises(TransportError) as ctx:
            await client.generate({"contents": []})
        self.assertNotIn("test-key", str(ctx.exception))

    async def test_non_json_body_raises(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))
        client = GeminiClient(_config(), transport=transport)
        with self.assertRaises(UpstreamResponseError):
            await client.generate({"contents": []})

    async def test_json_array_body_raises(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[1, 2]))
        client = GeminiClient(_config(), transport=transport)
        with self.assertRaises(UpstreamResponseError):
            await client.generate({"contents": []})

    def test_describe_hides_key(self) -> None:
        meta = GeminiClient(_config()).describe()
        self.assertEqual(meta["model"], "gemini-test")
        self.assertTrue(meta["api_key_present"])
        self.assertNotIn("test-key", json.dumps(meta))


if __name__ == "__main__":
    unittest.main()
