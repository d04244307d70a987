"""Tier table: an immutable, validated, ordered list of disjoint point ranges.

The table is a replaceable data asset. DEFAULT_TIERS is the active snapshot;
load_tier_table() swaps in a JSON file of {"level", "start", "end"} objects.
Either way the table is validated once at construction and any gap, overlap,
or out-of-order level is a TierTableError (fatal at startup).
"""

import json
from collections.abc import Iterable, Iterator
from pathlib import Path

from gifter.exceptions import TierTableError
from gifter.logging import get_logger
from gifter.models import Tier

logger = get_logger(__name__)

#: Sentinel end of the final tier. The final tier is treated as unbounded.
OPEN_END = 999_999_999_999

#: Active tier table snapshot: (level, start, end).
DEFAULT_TIERS: tuple[tuple[int, int, int], ...] = (
    (0, 0, 0),
    (1, 1, 7),
    (2, 8, 17),
    (3, 18, 33),
    (4, 34, 55),
    (5, 56, 89),
    (6, 90, 139),
    (7, 140, 219),
    (8, 220, 339),
    (9, 340, 529),
    (10, 530, 819),
    (11, 820, 1259),
    (12, 1260, 1919),
    (13, 1920, 2839),
    (14, 2840, 4339),
    (15, 4340, 6419),
    (16, 6420, 9279),
    (17, 9280, 13499),
    (18, 13500, 19399),
    (19, 19400, 27799),
    (20, 27800, 39599),
    (21, 39600, 54599),
    (22, 54600, 75799),
    (23, 75800, 104999),
    (24, 105000, 143999),
    (25, 144000, 195999),
    (26, 196000, 264999),
    (27, 265000, 356999),
    (28, 357000, 577999),
    (29, 578000, 636999),
    (30, 637000, 844999),
    (31, 845000, 1119999),
    (32, 1120000, 1469999),
    (33, 1470000, 1919999),
    (34, 1920000, 2499999),
    (35, 2500000, 3229999),
    (36, 3230000, 4179999),
    (37, 4180000, 5429999),
    (38, 5430000, 6889999),
    (39, 6890000, 8779999),
    (40, 8780000, 11199999),
    (41, 11200000, 14099999),
    (42, 14100000, 22299999),
    (43, 22300000, 30199999),
    (44, 30200000, 37499999),
    (45, 37500000, 47499999),
    (46, 47500000, 56699999),
    (47, 56700000, 67499999),
    (48, 67500000, 74999999),
    (49, 75000000, 97499999),
    (50, 97500000, OPEN_END),
)


def _validate(tiers: tuple[Tier, ...]) -> None:
    """Check table invariants, raising TierTableError on the first violation.

    Levels are contiguous ascending from 0, the first tier starts at 0,
    every tier has end >= start, and each start is the previous end + 1.
    """
    if not tiers:
        raise TierTableError("Tier table is empty")

    first = tiers[0]
    if first.level != 0 or first.start != 0:
        raise TierTableError(
            f"Tier table must start at level 0, point 0 (got level {first.level}, "
            f"start {first.start})"
        )

    previous: Tier | None = None
    for tier in tiers:
        if tier.end < tier.start:
            raise TierTableError(
                f"Level {tier.level}: end {tier.end} is before start {tier.start}"
            )
        if previous is not None:
            if tier.level != previous.level + 1:
                raise TierTableError(
                    f"Levels must be contiguous: {previous.level} is followed by {tier.level}"
                )
            if tier.start <= previous.end:
                raise TierTableError(
                    f"Level {tier.level} overlaps level {previous.level} "
                    f"({tier.start} <= {previous.end})"
                )
            if tier.start != previous.end + 1:
                raise TierTableError(
                    f"Gap between level {previous.level} and {tier.level} "
                    f"({previous.end} -> {tier.start})"
                )
        previous = tier


class TierTable:
    """Validated, read-only tier table.

    Usage:
        table = TierTable.default()
        table.top.level        # 50
        table.get(20)          # Tier(level=20, start=27800, end=39599)
    """

    def __init__(self, tiers: Iterable[Tier]) -> None:
        ordered = tuple(tiers)
        _validate(ordered)
        self._tiers = ordered

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[int, int, int]]) -> "TierTable":
        """Build a table from (level, start, end) tuples."""
        return cls(Tier(level, start, end) for level, start, end in rows)

    @classmethod
    def default(cls) -> "TierTable":
        """The built-in DEFAULT_TIERS snapshot."""
        return cls.from_rows(DEFAULT_TIERS)

    @property
    def tiers(self) -> tuple[Tier, ...]:
        return self._tiers

    @property
    def top(self) -> Tier:
        """The final, open-ended tier."""
        return self._tiers[-1]

    @property
    def max_level(self) -> int:
        return self._tiers[-1].level

    def get(self, level: int) -> Tier | None:
        """Tier for ``level``, or None if the level is outside the table."""
        if 0 <= level < len(self._tiers):
            return self._tiers[level]
        return None

    def __iter__(self) -> Iterator[Tier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)


def load_tier_table(path: str | Path | None = None) -> TierTable:
    """Load a tier table from a JSON file, or the default snapshot when path is None.

    The file holds a list of objects with integer "level", "start" and "end" keys.

    Raises:
        TierTableError: If the file cannot be read, parsed, or fails validation.
    """
    if path is None:
        table = TierTable.default()
        logger.info("tier_table_loaded", source="default", levels=len(table))
        return table

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        rows = [(int(r["level"]), int(r["start"]), int(r["end"])) for r in raw]
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise TierTableError(f"Cannot read tier table from {path}: {exc}") from exc

    table = TierTable.from_rows(rows)
    logger.info("tier_table_loaded", source=str(path), levels=len(table))
    return table
