"""Nebula Solver: step-by-step math solutions from Gemini, normalized to JSON."""

__version__ = "0.1.0"
