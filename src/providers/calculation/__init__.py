"""Calculation triggers: hosted edge function or in-process calculator."""

from src.providers.calculation.edge_function_trigger import EdgeFunctionTrigger
from src.providers.calculation.local_calculator import LocalSimilarityCalculator

__all__ = ["EdgeFunctionTrigger", "LocalSimilarityCalculator"]
