import dataclasses
import math
from typing import Tuple

from ..models import Crop, Profile, Reward


class EconomyHelper:
    """Converts harvests into gold and experience, and experience into levels. Every method is pure."""

    TIER_MULTIPLIERS: Tuple[float, ...] = (1.0, 1.5, 2.25, 3.4, 5.0)
    XP_BASE_THRESHOLD = 100
    XP_GROWTH_RATE = 1.25

    @staticmethod
    def _round_half_up(value: float) -> int:
        return int(math.floor(value + 0.5))

    @classmethod
    def tier_multiplier(cls, tier: int) -> float:
        index = min(max(tier, 1), len(cls.TIER_MULTIPLIERS)) - 1
        return cls.TIER_MULTIPLIERS[index]

    @classmethod
    def reward_for(cls, crop: Crop, streak_bonus: float = 1.0) -> Reward:
        if streak_bonus < 1.0:
            raise ValueError(f"Streak bonus must be at least 1.0, got {streak_bonus}.")

        multiplier = cls.tier_multiplier(crop.tier)
        return Reward(
            gold=cls._round_half_up(crop.base_gold_yield * multiplier * streak_bonus),
            xp=cls._round_half_up(crop.base_xp_yield * multiplier),
        )

    @classmethod
    def xp_threshold(cls, level: int) -> int:
        """XP needed to advance from `level` to `level + 1`."""
        return int(cls.XP_BASE_THRESHOLD * cls.XP_GROWTH_RATE ** (level - 1))

    @classmethod
    def level_progress(cls, total_xp: int) -> Tuple[int, int, int]:
        """Returns (level, xp earned inside that level, xp needed for the next level)."""

        level = 1
        remaining = max(0, total_xp)
        needed = cls.xp_threshold(level)

        while remaining >= needed:
            remaining -= needed
            level += 1
            needed = cls.xp_threshold(level)

        return level, remaining, needed

    @classmethod
    def level_for_xp(cls, total_xp: int) -> int:
        return cls.level_progress(total_xp)[0]

    @classmethod
    def apply_xp(cls, profile: Profile, xp_gained: int) -> Profile:
        if xp_gained < 0:
            raise ValueError("XP can only be granted, never removed.")

        new_xp = profile.xp + xp_gained
        new_level = max(profile.level, cls.level_for_xp(new_xp))
        return dataclasses.replace(profile, xp=new_xp, level=new_level)

    @staticmethod
    def plot_expansion_cost(current_plots: int, initial_plots: int, base_cost: int, multiplier: float) -> int:
        expansions_bought = max(0, current_plots - initial_plots)
        return int(base_cost * multiplier ** expansions_bought)
