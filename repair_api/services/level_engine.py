"""
Technician Level Engine

Pure rules over a company's technician level table:
- resolve_level: which tier a point total belongs to
- validate_level_ranges: whether the tiers partition the non-negative integers
- find_promotion_candidate: the highest tier above the current one that the
  technician's points already qualify for

Each tier covers the half-open interval [min_points, max_points + 1); the top
tier has no max_points and covers [min_points, +inf). Nothing here touches the
database; callers pass in the levels they loaded.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from repair_api.exceptions import ConfigurationError


@dataclass(frozen=True)
class LevelRange:
    """Half-open point interval of one level."""

    lower: int
    upper: Optional[int]  # exclusive; None means unbounded

    @classmethod
    def of(cls, level: Any) -> "LevelRange":
        upper = None if level.max_points is None else level.max_points + 1
        return cls(lower=level.min_points, upper=upper)

    def contains(self, points: int) -> bool:
        if points < self.lower:
            return False
        return self.upper is None or points < self.upper


@dataclass
class PromotionCandidate:
    """A technician whose points qualify for a tier above the current one."""

    current_level: Optional[Any]
    eligible_level: Any
    total_points: int
    points_above_threshold: int


def sort_levels(levels: Sequence[Any]) -> list:
    """Order levels lowest tier first."""
    return sorted(levels, key=lambda level: (level.sort_order, level.min_points))


def is_above(level: Any, other: Optional[Any]) -> bool:
    """True when ``level`` ranks strictly higher than ``other``.

    Every level is above "no level".
    """
    if other is None:
        return True
    return level.sort_order > other.sort_order


def _ranges(levels: Sequence[Any]) -> list[tuple[Any, LevelRange]]:
    ordered = sort_levels(levels)
    top = ordered[-1]
    pairs = []
    for level in ordered:
        if level.max_points is None and level is not top:
            raise ConfigurationError(
                f"Level {level.code} has no upper bound but is not the highest level"
            )
        pairs.append((level, LevelRange.of(level)))
    return pairs


def resolve_level(total_points: int, levels: Sequence[Any]) -> Any:
    """
    Return the single level whose range contains ``total_points``.

    A negative total (a deficit left by a manual adjustment) resolves to the
    base tier, the one containing 0.

    Raises:
        ConfigurationError: no level, or more than one level, matches
    """
    if not levels:
        raise ConfigurationError("No technician levels are configured")

    lookup = max(total_points, 0)
    matches = [level for level, rng in _ranges(levels) if rng.contains(lookup)]

    if not matches:
        raise ConfigurationError(
            f"No technician level covers {total_points} points; check the level ranges"
        )
    if len(matches) > 1:
        codes = ", ".join(level.code for level in matches)
        raise ConfigurationError(
            f"Technician levels overlap at {total_points} points ({codes})"
        )
    return matches[0]


def validate_level_ranges(levels: Sequence[Any], require_complete: bool = True) -> None:
    """
    Check that the levels partition the non-negative integers.

    With ``require_complete=False`` only overlaps and bad bounds are
    rejected; gaps, a lowest level above 0 and a bounded top level are
    tolerated while an admin edits the table one level at a time.

    Raises:
        ConfigurationError: describing the first gap, overlap or bad bound found
    """
    if not levels:
        if require_complete:
            raise ConfigurationError("At least one technician level is required")
        return

    ordered = sort_levels(levels)

    sort_orders = [level.sort_order for level in ordered]
    if len(set(sort_orders)) != len(sort_orders):
        raise ConfigurationError("Technician levels must have distinct sort orders")

    if require_complete and ordered[0].min_points != 0:
        raise ConfigurationError(
            f"The lowest level {ordered[0].code} must start at 0 points"
        )

    for level in ordered:
        if level.min_points < 0:
            raise ConfigurationError(f"Level {level.code} has negative min points")
        if level.max_points is not None and level.max_points < level.min_points:
            raise ConfigurationError(
                f"Level {level.code} max points {level.max_points} is below its min points {level.min_points}"
            )

    for lower, upper in zip(ordered, ordered[1:]):
        if lower.max_points is None:
            raise ConfigurationError(
                f"Level {lower.code} has no upper bound but is not the highest level"
            )
        expected = lower.max_points + 1
        if upper.min_points < expected:
            raise ConfigurationError(
                f"Levels {lower.code} and {upper.code} overlap at {upper.min_points} points"
            )
        if require_complete and upper.min_points > expected:
            raise ConfigurationError(
                f"Gap between {lower.code} and {upper.code}: points {expected}-{upper.min_points - 1} have no level"
            )

    if require_complete and ordered[-1].max_points is not None:
        raise ConfigurationError(
            f"The highest level {ordered[-1].code} must be open-ended"
        )


def find_promotion_candidate(
    current_level: Optional[Any],
    total_points: int,
    levels: Sequence[Any],
) -> Optional[PromotionCandidate]:
    """
    Highest level above ``current_level`` whose min points the total reaches.

    Promotions skip tiers: if the total qualifies for several levels above the
    current one, the highest of them is the candidate. Returns None when no
    level above the current one qualifies.
    """
    qualifying = [
        level for level in sort_levels(levels)
        if level.min_points <= total_points and is_above(level, current_level)
    ]
    if not qualifying:
        return None

    eligible = qualifying[-1]
    return PromotionCandidate(
        current_level=current_level,
        eligible_level=eligible,
        total_points=total_points,
        points_above_threshold=total_points - eligible.min_points,
    )


def is_promotion_eligible(profile: Any, levels: Sequence[Any]) -> Optional[PromotionCandidate]:
    """Promotion candidate for a technician profile, or None when not eligible."""
    current = next(
        (level for level in levels if level.id == profile.current_level_id),
        None,
    )
    return find_promotion_candidate(current, profile.total_points, levels)
