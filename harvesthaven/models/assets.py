from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Crop:
    """Represents a single crop definition from crops.json."""
    id: str
    name: str
    tier: int
    grow_duration_seconds: int
    base_gold_yield: int
    base_xp_yield: int
    seed_cost: int
    unlock_level: int = 1
    icon: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class QuestDefinition:
    """Represents a recurring daily quest from quests.json."""
    id: str
    name: str
    kind: str
    target: int
    reward_gold: int = 0
    reward_gems: int = 0
    min_tier: int = 1
    description: str = ""


@dataclass(frozen=True)
class AchievementDefinition:
    """Represents a one-way milestone from achievements.json."""
    id: str
    name: str
    kind: str
    threshold: int
    reward_gold: int = 0
    reward_gems: int = 0
    icon: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class FarmSettings:
    """Tunable game settings, stored in the global state and editable by the bot owner."""
    starting_gold: int = 100
    starting_gems: int = 10
    initial_plots: int = 9
    max_plots: int = 49
    plot_expansion_base_cost: int = 500
    plot_expansion_multiplier: float = 1.5
    daily_reward_gold: int = 100
    daily_reset_timezone: str = "US/Eastern"
    max_command_retries: int = 3
    persistence_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class ItemDefinition:
    """Represents a purchasable item from items.json. `effect_type` is None for purely decorative items."""
    id: str
    name: str
    kind: str
    price_gold: int = 0
    price_gems: int = 0
    unlock_level: int = 1
    max_quantity: int = -1
    effect_type: Optional[str] = None
    effect_value: float = 1.0
    icon: Optional[str] = None
    description: str = ""
