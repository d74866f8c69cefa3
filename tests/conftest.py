import asyncio
import copy

import pytest

from harvesthaven.helpers import CropHelper, FarmHelper, GameStateHelper, ItemHelper, LoggingHelper, QuestHelper
from harvesthaven.models import AchievementDefinition, Crop, ItemDefinition, QuestDefinition

# 2023-11-14 17:13:20 US/Eastern; the next local midnight is 1700024400.
NOW = 1_700_000_000.0
NEXT_RESET = 1_700_024_400.0


class FakeValue:
    """Stands in for a Red Config value group: awaited to read, `.set()` to write."""

    def __init__(self, initial):
        self._value = copy.deepcopy(initial)
        self.set_calls = 0

    async def __call__(self):
        return copy.deepcopy(self._value)

    async def set(self, value):
        self._value = copy.deepcopy(value)
        self.set_calls += 1


class FakeConfig:
    def __init__(self, game_state=None):
        self.game_state = FakeValue(game_state or {})


TEST_CROPS = [
    Crop(id="wheat", name="Wheat", tier=1, grow_duration_seconds=60, base_gold_yield=5, base_xp_yield=3,
         seed_cost=10),
    Crop(id="carrot", name="Carrot", tier=1, grow_duration_seconds=30, base_gold_yield=10, base_xp_yield=60,
         seed_cost=5),
    Crop(id="melon", name="Melon", tier=3, grow_duration_seconds=120, base_gold_yield=20, base_xp_yield=10,
         seed_cost=15, unlock_level=3),
]

TEST_QUESTS = [
    QuestDefinition(id="harvest_3", name="Morning Harvest", kind="harvest", target=3, reward_gold=30),
    QuestDefinition(id="harvest_tier_3", name="Fine Produce", kind="harvest_tier", target=1, min_tier=3,
                    reward_gold=100, reward_gems=2),
]

TEST_ACHIEVEMENTS = [
    AchievementDefinition(id="first_harvest", name="First Harvest", kind="harvest_count", threshold=1,
                          reward_gold=50),
    AchievementDefinition(id="level_2", name="Sprout", kind="level", threshold=2, reward_gems=1),
]


@pytest.fixture
def logger():
    return LoggingHelper(None, 0)


@pytest.fixture
def config():
    return FakeConfig()


@pytest.fixture
def game_state_helper(config, logger):
    helper = GameStateHelper(config, logger)
    asyncio.run(helper.load_game_state())
    helper.set_global_state("starting_gold", 50)
    return helper


@pytest.fixture
def crop_helper():
    return CropHelper(TEST_CROPS)


@pytest.fixture
def quest_helper():
    return QuestHelper(TEST_QUESTS, TEST_ACHIEVEMENTS, "US/Eastern")


@pytest.fixture
def item_helper():
    return ItemHelper(TEST_ITEMS)


@pytest.fixture
def farm_helper(game_state_helper, crop_helper, quest_helper, logger, item_helper):
    return FarmHelper(game_state_helper, crop_helper, quest_helper, logger, item_helper=item_helper)
