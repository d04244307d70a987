"""Tier progression: map a point balance to a tier, progress, and monetary distances.

All operations are pure functions of the (immutable) tier table and their
arguments. Monetary results use Decimal arithmetic exclusively and are never
negative: reaching or passing a target yields 0 through an explicit clamp.

Overflow rule: any balance at or above the final tier's start belongs to the
final tier, whatever its nominal end.
"""

from bisect import bisect_right
from decimal import Decimal

from gifter.currency import validate_rate
from gifter.exceptions import InvalidInputError
from gifter.models import Currency, LevelBreakdown, LevelStatus, TierSummary
from gifter.tiers.table import TierTable

#: Progress percentages are reported to two decimal places.
_PCT_QUANTIZE = Decimal("0.01")
_HUNDRED = Decimal("100")
_ZERO = Decimal("0")

#: Status labels by minimum level, highest first.
STATUS_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (40, "Elite"),
    (25, "Advanced"),
)
DEFAULT_STATUS = "In Progress"


def _check_points(points: int) -> int:
    """Reject anything that is not a non-negative integer balance."""
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidInputError(f"points must be an integer, got {type(points).__name__}")
    if points < 0:
        raise InvalidInputError(f"points must be non-negative, got {points}")
    return points


class TierProgressionEngine:
    """Computes tier, progress, and distances for point balances.

    Args:
        table: Validated tier table.
        milestone_step: Every ``milestone_step``-th level is a milestone;
            the top level is always one.
    """

    def __init__(self, table: TierTable, milestone_step: int = 5) -> None:
        if milestone_step < 1:
            raise InvalidInputError(f"milestone_step must be >= 1, got {milestone_step}")
        self._table = table
        self._starts = [tier.start for tier in table]
        self._milestones = tuple(
            level for level in range(milestone_step, table.max_level, milestone_step)
        ) + (table.max_level,)

    @property
    def table(self) -> TierTable:
        return self._table

    @property
    def max_level(self) -> int:
        return self._table.max_level

    @property
    def milestones(self) -> tuple[int, ...]:
        return self._milestones

    # ──────────────────────────────────────────────
    # Levels
    # ──────────────────────────────────────────────

    def tier_of(self, points: int) -> int:
        """Level whose [start, end] contains ``points``; 0 for points <= 0.

        Balances at or above the final tier's start map to the final level.
        """
        if isinstance(points, bool) or not isinstance(points, int):
            raise InvalidInputError(f"points must be an integer, got {type(points).__name__}")
        if points <= 0:
            return 0
        if points >= self._table.top.start:
            return self._table.top.level
        # Contiguous table: the tier is the last one starting at or below points.
        return self._table.tiers[bisect_right(self._starts, points) - 1].level

    def next_milestone(self, current_level: int) -> int:
        """Smallest milestone strictly above ``current_level``, else the top level."""
        for milestone in self._milestones:
            if milestone > current_level:
                return milestone
        return self.max_level

    def status_label(self, level: int) -> str:
        for minimum, label in STATUS_THRESHOLDS:
            if level >= minimum:
                return label
        return DEFAULT_STATUS

    # ──────────────────────────────────────────────
    # Distances
    # ──────────────────────────────────────────────

    def points_to_next_tier(self, points: int) -> int:
        """Points missing to reach the next level.

        0 at level 0 (not started yet) and at the top level (no next tier).
        """
        level = self.tier_of(_check_points(points))
        if level == 0 or level >= self.max_level:
            return 0
        next_tier = self._table.tiers[level + 1]
        return max(0, next_tier.start - points)

    def monetary_to_next_tier(self, points: int, cost_per_point: Decimal) -> Decimal:
        return Decimal(self.points_to_next_tier(points)) * validate_rate(cost_per_point)

    def total_spent(self, points: int, cost_per_point: Decimal) -> Decimal:
        """Monetary equivalent of the whole balance, not just the current tier."""
        return Decimal(_check_points(points)) * validate_rate(cost_per_point)

    def points_to_milestone(self, points: int, milestone_level: int) -> int:
        """Points missing to reach ``milestone_level``'s start; 0 once reached.

        Raises:
            InvalidInputError: If milestone_level is not in the table.
        """
        _check_points(points)
        target = self._table.get(milestone_level)
        if target is None:
            raise InvalidInputError(
                f"Level {milestone_level} is outside the tier table (0-{self.max_level})"
            )
        return max(0, target.start - points)

    def monetary_to_milestone(
        self,
        points: int,
        milestone_level: int,
        cost_per_point: Decimal,
    ) -> Decimal:
        cost = validate_rate(cost_per_point)
        return Decimal(self.points_to_milestone(points, milestone_level)) * cost

    def progress_within_tier(self, points: int) -> Decimal:
        """Percentage of the current tier already covered, in [0, 100].

        The open-ended top tier and single-point tiers always report 100.
        """
        level = self.tier_of(_check_points(points))
        tier = self._table.tiers[level]
        if level == self.max_level or tier.start == tier.end:
            return _HUNDRED.quantize(_PCT_QUANTIZE)

        pct = Decimal(points - tier.start) / Decimal(tier.end - tier.start) * _HUNDRED
        return min(max(pct, _ZERO), _HUNDRED).quantize(_PCT_QUANTIZE)

    # ──────────────────────────────────────────────
    # Views
    # ──────────────────────────────────────────────

    def summarize(self, points: int, currency: Currency) -> TierSummary:
        """Compute every calculator display value for a balance in ``currency``.

        ``currency`` is expected to already carry the effective cost per point.
        """
        _check_points(points)
        cost = validate_rate(currency.cost_per_point)
        level = self.tier_of(points)
        milestone = self.next_milestone(level)

        return TierSummary(
            points=points,
            currency=currency,
            current_level=level,
            total_spent=self.total_spent(points, cost),
            points_to_next_tier=self.points_to_next_tier(points),
            money_to_next_tier=self.monetary_to_next_tier(points, cost),
            progress_pct=self.progress_within_tier(points),
            points_to_top=self.points_to_milestone(points, self.max_level),
            money_to_top=self.monetary_to_milestone(points, self.max_level, cost),
            next_milestone=milestone,
            points_to_milestone=self.points_to_milestone(points, milestone),
            money_to_milestone=self.monetary_to_milestone(points, milestone, cost),
            status=self.status_label(level),
        )

    def level_breakdown(
        self,
        cost_per_point: Decimal,
        points: int | None = None,
    ) -> list[LevelBreakdown]:
        """One row per tier with its size and cost, plus the user's standing when given.

        For the current tier: points held since its start and points left to its end
        (0 for the open-ended top tier). Completed tiers count as fully held; locked
        tiers report the distance to their start.
        """
        cost = validate_rate(cost_per_point)
        level = self.tier_of(_check_points(points)) if points is not None else None

        rows: list[LevelBreakdown] = []
        for tier in self._table:
            row = LevelBreakdown(
                tier=tier,
                tier_points=tier.size,
                tier_cost=Decimal(tier.size) * cost,
            )
            if points is not None and level is not None:
                if tier.level == level:
                    row.status = LevelStatus.CURRENT
                    row.points_held = points - tier.start
                    if tier.level < self.max_level:
                        row.points_missing = max(0, tier.end - points)
                elif tier.level < level:
                    row.status = LevelStatus.COMPLETE
                    row.points_held = tier.size
                else:
                    row.status = LevelStatus.LOCKED
                    row.points_missing = max(0, tier.start - points)
                row.money_spent = Decimal(row.points_held) * cost
                row.money_missing = Decimal(row.points_missing) * cost
            rows.append(row)
        return rows
