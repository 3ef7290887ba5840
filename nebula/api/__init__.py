"""HTTP layer for the solve service."""

from .handler import SolveHandler, SolveInput
from .server import create_app

__all__ = ["SolveHandler", "SolveInput", "create_app"]
