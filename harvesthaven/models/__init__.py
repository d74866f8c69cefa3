from .assets import (
    Crop,
    QuestDefinition,
    AchievementDefinition,
    FarmSettings,
    ItemDefinition,
)
from .farm_data import (
    Plot,
    Profile,
    DailyQuest,
    Achievement,
    QuestBook,
    FarmEvent,
    FarmState,
    GrowthStatus,
    Reward,
    PlotView,
    QuestView,
    AchievementView,
    FarmView,
    QuestDelta,
    HarvestResult,
    ClaimResult,
)

__all__ = [
    "Crop",
    "QuestDefinition",
    "AchievementDefinition",
    "FarmSettings",
    "ItemDefinition",
    "Plot",
    "Profile",
    "DailyQuest",
    "Achievement",
    "QuestBook",
    "FarmEvent",
    "FarmState",
    "GrowthStatus",
    "Reward",
    "PlotView",
    "QuestView",
    "AchievementView",
    "FarmView",
    "QuestDelta",
    "HarvestResult",
    "ClaimResult",
]
