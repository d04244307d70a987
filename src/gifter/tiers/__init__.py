"""Tier progression layer -- validated tier table and the progression engine."""

from gifter.tiers.engine import TierProgressionEngine
from gifter.tiers.table import DEFAULT_TIERS, TierTable, load_tier_table

__all__ = [
    "DEFAULT_TIERS",
    "TierProgressionEngine",
    "TierTable",
    "load_tier_table",
]
