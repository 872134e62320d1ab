"""Conformance harness for driver retryable reads fixtures."""

from pathlib import Path

FIXTURES_DIR = Path(__file__).parent / "fixtures"

__version__ = "0.1.0"
