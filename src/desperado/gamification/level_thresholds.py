"""Level thresholds and computation.

Levels 1..31 use the table below (cumulative XP). Beyond the table each
level costs 12% more than the last tabulated threshold, compounded.
Every 10 levels make one floor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

LEVEL_THRESHOLDS: list[int] = [
    0,  # Level 1
    100,
    250,
    500,
    800,
    1200,
    1700,
    2300,
    3000,
    3800,  # Level 10
    4800,  # Level 11 (Floor 2)
    5900,
    7200,
    8700,
    10400,
    12300,
    14500,
    17000,
    19800,
    23000,
    26500,  # Level 21 (Floor 3)
    30500,
    35000,
    40000,
    45500,
    51500,
    58500,
    66000,
    74500,
    84000,
    94500,  # Level 31 (Floor 4)
]

GROWTH_RATE = 1.12
LEVELS_PER_FLOOR = 10


@dataclass(frozen=True)
class LevelInfo:
    level: int
    xp_to_next: int
    xp_in_level: int
    progress: float


def xp_for_level(level: int) -> int:
    """Cumulative XP required to reach ``level``."""
    if level <= 0:
        return 0
    if level <= len(LEVEL_THRESHOLDS):
        return LEVEL_THRESHOLDS[level - 1]
    extra_levels = level - len(LEVEL_THRESHOLDS)
    return math.floor(LEVEL_THRESHOLDS[-1] * GROWTH_RATE**extra_levels)


def calculate_level(total_xp: int) -> LevelInfo:
    """Compute level info from total XP.

    Walks upward from level 1; negative totals resolve to level 1.
    """
    level = 1
    while xp_for_level(level + 1) <= total_xp:
        level += 1

    current_level_xp = xp_for_level(level)
    next_level_xp = xp_for_level(level + 1)
    xp_in_level = total_xp - current_level_xp
    return LevelInfo(
        level=level,
        xp_to_next=next_level_xp - total_xp,
        xp_in_level=xp_in_level,
        progress=xp_in_level / (next_level_xp - current_level_xp) * 100,
    )


def get_floor_for_level(level: int) -> int:
    return (level - 1) // LEVELS_PER_FLOOR + 1


def level_table(max_level: int = len(LEVEL_THRESHOLDS)) -> list[dict]:
    """Level definitions for the /levels endpoint."""
    return [
        {
            "level": level,
            "xp_required": xp_for_level(level),
            "floor": get_floor_for_level(level),
        }
        for level in range(1, max_level + 1)
    ]
