from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Plot:
    """One grid cell of a farm. Growth is never stored; it is derived from planted_at at read time."""
    index: int
    crop_id: Optional[str] = None
    planted_at: Optional[float] = None
    watered_at: Optional[float] = None
    fertilized_at: Optional[float] = None
    growth_bonus: float = 1.0

    @property
    def is_empty(self) -> bool:
        return self.crop_id is None


@dataclass(frozen=True)
class Profile:
    """A player's economy totals."""
    owner_id: str
    gold: int = 0
    gems: int = 0
    level: int = 1
    xp: int = 0
    total_harvests: int = 0
    total_gold_earned: int = 0
    last_daily: Optional[str] = None
    version: int = 0


@dataclass(frozen=True)
class DailyQuest:
    id: str
    requirement_kind: str
    target: int
    reset_at: float
    progress: int = 0
    claimed: bool = False
    min_tier: int = 1

    @property
    def completed(self) -> bool:
        return self.progress >= self.target


@dataclass(frozen=True)
class Achievement:
    id: str
    requirement_kind: str
    threshold: int
    unlocked: bool = False
    claimed: bool = False


@dataclass(frozen=True)
class QuestBook:
    """All quest and achievement progress of one player."""
    quests: Tuple[DailyQuest, ...] = ()
    achievements: Tuple[Achievement, ...] = ()

    def get_quest(self, quest_id: str) -> Optional[DailyQuest]:
        return next((q for q in self.quests if q.id == quest_id), None)

    def get_achievement(self, achievement_id: str) -> Optional[Achievement]:
        return next((a for a in self.achievements if a.id == achievement_id), None)


@dataclass(frozen=True)
class FarmEvent:
    """Something that happened on a farm which quests may count, e.g. one harvest of a tier 2 crop."""
    kind: str
    amount: int = 1
    tier: Optional[int] = None


@dataclass
class FarmState:
    """The internal representation of a player's farm. Loaded and saved as a single unit."""
    profile: Profile
    plots: List[Plot] = field(default_factory=list)
    inventory: Dict[str, int] = field(default_factory=dict)
    quest_book: QuestBook = field(default_factory=QuestBook)

    def counters(self) -> Dict[str, int]:
        """Cumulative values that achievements are measured against."""
        return {
            "harvest_count": self.profile.total_harvests,
            "gold_earned": self.profile.total_gold_earned,
            "level": self.profile.level,
            "plots_unlocked": len(self.plots),
        }


# --- External Immutable Views ---

@dataclass(frozen=True)
class GrowthStatus:
    growth_percent: Optional[int]
    is_ready: bool
    seconds_remaining: int = 0


@dataclass(frozen=True)
class Reward:
    gold: int
    xp: int


@dataclass(frozen=True)
class PlotView:
    index: int
    crop_id: Optional[str]
    crop_name: Optional[str]
    growth_percent: Optional[int]
    is_ready: bool
    is_watered: bool
    seconds_remaining: int
    is_fertilized: bool = False


@dataclass(frozen=True)
class QuestView:
    id: str
    name: str
    requirement_kind: str
    target: int
    progress: int
    completed: bool
    claimed: bool
    reward_gold: int
    reward_gems: int
    seconds_until_reset: int


@dataclass(frozen=True)
class AchievementView:
    id: str
    name: str
    requirement_kind: str
    threshold: int
    progress: int
    unlocked: bool
    claimed: bool


@dataclass(frozen=True)
class FarmView:
    """The read-only projection of a farm at a given instant."""
    owner_id: str
    gold: int
    gems: int
    level: int
    xp: int
    xp_into_level: int
    xp_for_next_level: int
    total_harvests: int
    total_gold_earned: int
    version: int
    plots: Tuple[PlotView, ...]
    quests: Tuple[QuestView, ...]
    achievements: Tuple[AchievementView, ...]
    inventory: MappingProxyType
    as_of: float


@dataclass(frozen=True)
class QuestDelta:
    quest_id: str
    progress_before: int
    progress_after: int
    completed: bool


@dataclass(frozen=True)
class HarvestResult:
    view: FarmView
    reward: Reward
    crop_ids: Tuple[str, ...]
    leveled_up: bool
    new_level: int
    quest_deltas: Tuple[QuestDelta, ...]
    unlocked_achievements: Tuple[str, ...]


@dataclass(frozen=True)
class ClaimResult:
    view: FarmView
    gold: int
    gems: int
