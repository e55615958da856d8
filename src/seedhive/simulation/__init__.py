"""Batch drivers for exercising the colony engine."""

from .fuzz import ColonyFuzzHarness, FuzzResult

__all__ = ["ColonyFuzzHarness", "FuzzResult"]
