"""Level derivation from a point balance.

Levels are never stored: every 100 points is one level, starting at level 1.
"""

from __future__ import annotations

POINTS_PER_LEVEL = 100


def compute_level(balance: int) -> dict:
    """Compute level info from a balance.

    Returns dict with keys: balance, level, level_floor, next_level_at,
    points_to_next_level. Negative balances stay on level 1.
    """
    level = max(1, balance // POINTS_PER_LEVEL + 1)
    next_level_at = level * POINTS_PER_LEVEL
    return {
        "balance": balance,
        "level": level,
        "level_floor": (level - 1) * POINTS_PER_LEVEL,
        "next_level_at": next_level_at,
        "points_to_next_level": next_level_at - balance,
    }
