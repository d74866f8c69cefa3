import asyncio

import pytest

from harvesthaven.errors import (
    CropLockedError,
    CropNotFoundError,
    InsufficientFundsError,
    InvalidPlotError,
    ItemNotFoundError,
    ItemUnavailableError,
    NotReadyError,
    PlotEmptyError,
    PlotOccupiedError,
    QuestNotFoundError,
    RewardUnavailableError,
    VersionConflictError,
)
from harvesthaven.helpers import CropHelper, FarmHelper, GameStateHelper

from .conftest import NEXT_RESET, NOW, TEST_CROPS

OWNER = "1001"


def test_first_access_provisions_and_persists_a_farm(farm_helper, game_state_helper, config):
    view = asyncio.run(farm_helper.get_farm(OWNER, NOW))

    assert view.gold == 50
    assert view.gems == 10
    assert view.level == 1
    assert len(view.plots) == 9
    assert all(p.crop_id is None for p in view.plots)
    assert view.version == 1
    assert game_state_helper.get_version(OWNER) == 1
    assert config.game_state.set_calls == 1

    again = asyncio.run(farm_helper.get_farm(OWNER, NOW + 5))
    assert again.version == 1


def test_plant_water_harvest_end_to_end(farm_helper):
    view = asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    assert view.gold == 40
    assert view.plots[0].crop_id == "wheat"

    view = asyncio.run(farm_helper.get_farm(OWNER, NOW + 30))
    assert view.plots[0].growth_percent == 50
    assert view.plots[0].is_ready is False

    view = asyncio.run(farm_helper.water(OWNER, 0, NOW + 30))
    assert view.plots[0].is_watered is True

    view = asyncio.run(farm_helper.get_farm(OWNER, NOW + 40))
    assert view.plots[0].growth_percent == 100
    assert view.plots[0].is_ready is True

    result = asyncio.run(farm_helper.harvest(OWNER, 0, NOW + 40))
    assert result.reward.gold == 5
    assert result.reward.xp == 3
    assert result.view.gold == 45
    assert result.view.plots[0].crop_id is None
    assert result.view.plots[0].growth_percent is None
    assert result.crop_ids == ("wheat",)


def test_failed_plant_changes_nothing(farm_helper, game_state_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    version = game_state_helper.get_version(OWNER)

    with pytest.raises(PlotOccupiedError):
        asyncio.run(farm_helper.plant(OWNER, 0, "carrot", NOW))
    with pytest.raises(InvalidPlotError):
        asyncio.run(farm_helper.plant(OWNER, 9, "carrot", NOW))
    with pytest.raises(InvalidPlotError):
        asyncio.run(farm_helper.plant(OWNER, -1, "carrot", NOW))
    with pytest.raises(CropNotFoundError):
        asyncio.run(farm_helper.plant(OWNER, 1, "mandrake", NOW))
    with pytest.raises(CropLockedError):
        asyncio.run(farm_helper.plant(OWNER, 1, "melon", NOW))

    assert game_state_helper.get_version(OWNER) == version
    view = asyncio.run(farm_helper.get_farm(OWNER, NOW))
    assert view.gold == 40
    assert view.plots[1].crop_id is None


def test_plant_without_enough_gold(farm_helper, game_state_helper):
    game_state_helper.set_global_state("starting_gold", 12)

    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    with pytest.raises(InsufficientFundsError):
        asyncio.run(farm_helper.plant(OWNER, 1, "wheat", NOW))

    assert asyncio.run(farm_helper.get_farm(OWNER, NOW)).gold == 2


def test_watering_twice_is_the_same_as_once(farm_helper, game_state_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    first = asyncio.run(farm_helper.water(OWNER, 0, NOW + 10))
    version = game_state_helper.get_version(OWNER)

    second = asyncio.run(farm_helper.water(OWNER, 0, NOW + 20))

    assert game_state_helper.get_version(OWNER) == version
    assert second.plots == asyncio.run(farm_helper.get_farm(OWNER, NOW + 20)).plots
    assert first.plots[0].is_watered and second.plots[0].is_watered


def test_watering_an_empty_plot_fails(farm_helper):
    with pytest.raises(PlotEmptyError) as exc_info:
        asyncio.run(farm_helper.water(OWNER, 2, NOW))

    assert exc_info.value.stale_view is True
    assert exc_info.value.code == "plot_empty"


def test_harvesting_early_fails_and_changes_nothing(farm_helper, game_state_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    version = game_state_helper.get_version(OWNER)

    with pytest.raises(NotReadyError):
        asyncio.run(farm_helper.harvest(OWNER, 0, NOW + 59))

    assert game_state_helper.get_version(OWNER) == version
    view = asyncio.run(farm_helper.get_farm(OWNER, NOW + 59))
    assert view.plots[0].crop_id == "wheat"
    assert view.gold == 40


def test_harvesting_an_empty_plot_fails(farm_helper):
    with pytest.raises(PlotEmptyError):
        asyncio.run(farm_helper.harvest(OWNER, 0, NOW))


def test_harvest_levels_up_and_unlocks_achievements(farm_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "carrot", NOW))
    asyncio.run(farm_helper.plant(OWNER, 1, "carrot", NOW))

    first = asyncio.run(farm_helper.harvest(OWNER, 0, NOW + 30))
    assert first.leveled_up is False
    assert first.unlocked_achievements == ("first_harvest",)

    second = asyncio.run(farm_helper.harvest(OWNER, 1, NOW + 30))
    assert second.leveled_up is True
    assert second.new_level == 2
    assert second.view.xp == 120
    assert second.view.xp_into_level == 20
    assert second.view.xp_for_next_level == 125
    assert second.unlocked_achievements == ("level_2",)


def test_harvest_all_collects_only_ready_plots(farm_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "carrot", NOW))
    asyncio.run(farm_helper.plant(OWNER, 1, "carrot", NOW))
    asyncio.run(farm_helper.plant(OWNER, 2, "wheat", NOW))

    result = asyncio.run(farm_helper.harvest_all(OWNER, NOW + 30))

    assert result.crop_ids == ("carrot", "carrot")
    assert result.reward.gold == 20
    assert result.view.plots[2].crop_id == "wheat"
    assert result.view.total_harvests == 2

    with pytest.raises(NotReadyError):
        asyncio.run(farm_helper.harvest_all(OWNER, NOW + 31))


def test_daily_quest_counts_three_harvests_then_resets(farm_helper):
    for i in range(5):
        asyncio.run(farm_helper.plant(OWNER, i, "carrot", NOW))

    for i in range(3):
        result = asyncio.run(farm_helper.harvest(OWNER, i, NOW + 30))
    quest = next(q for q in result.view.quests if q.id == "harvest_3")
    assert (quest.progress, quest.completed) == (3, True)

    result = asyncio.run(farm_helper.harvest(OWNER, 3, NOW + 31))
    quest = next(q for q in result.view.quests if q.id == "harvest_3")
    assert quest.progress == 3
    assert all(d.quest_id != "harvest_3" for d in result.quest_deltas)

    result = asyncio.run(farm_helper.harvest(OWNER, 4, NEXT_RESET + 60))
    quest = next(q for q in result.view.quests if q.id == "harvest_3")
    assert quest.progress == 1
    assert quest.seconds_until_reset == 86400 - 60


def test_claiming_quest_rewards(farm_helper):
    for i in range(3):
        asyncio.run(farm_helper.plant(OWNER, i, "wheat", NOW))

    with pytest.raises(RewardUnavailableError):
        asyncio.run(farm_helper.claim_quest(OWNER, "harvest_3", NOW + 60))

    for i in range(3):
        asyncio.run(farm_helper.harvest(OWNER, i, NOW + 60))

    claimed = asyncio.run(farm_helper.claim_quest(OWNER, "harvest_3", NOW + 61))
    assert claimed.gold == 30
    assert claimed.view.gold == 50 - 30 + 15 + 30

    with pytest.raises(RewardUnavailableError):
        asyncio.run(farm_helper.claim_quest(OWNER, "harvest_3", NOW + 62))
    with pytest.raises(QuestNotFoundError):
        asyncio.run(farm_helper.claim_quest(OWNER, "slay_dragon", NOW + 62))


def test_claiming_achievement_rewards(farm_helper):
    with pytest.raises(RewardUnavailableError):
        asyncio.run(farm_helper.claim_achievement(OWNER, "first_harvest", NOW))

    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    asyncio.run(farm_helper.harvest(OWNER, 0, NOW + 60))

    claimed = asyncio.run(farm_helper.claim_achievement(OWNER, "first_harvest", NOW + 61))
    assert claimed.gold == 50
    assert claimed.view.gold == 45 + 50
    assert next(a for a in claimed.view.achievements if a.id == "first_harvest").claimed

    with pytest.raises(RewardUnavailableError):
        asyncio.run(farm_helper.claim_achievement(OWNER, "first_harvest", NOW + 62))
    with pytest.raises(QuestNotFoundError):
        asyncio.run(farm_helper.claim_achievement(OWNER, "nope", NOW + 62))


def test_daily_reward_once_per_local_day(farm_helper):
    result = asyncio.run(farm_helper.claim_daily(OWNER, NOW))
    assert result.gold == 100
    assert result.view.gold == 150

    with pytest.raises(RewardUnavailableError):
        asyncio.run(farm_helper.claim_daily(OWNER, NEXT_RESET - 1))

    tomorrow = asyncio.run(farm_helper.claim_daily(OWNER, NEXT_RESET + 1))
    assert tomorrow.view.gold == 250


def test_expanding_the_farm(farm_helper, game_state_helper):
    with pytest.raises(InsufficientFundsError):
        asyncio.run(farm_helper.expand_plots(OWNER, NOW))

    asyncio.run(farm_helper.set_gold(OWNER, 2000, NOW))
    result = asyncio.run(farm_helper.expand_plots(OWNER, NOW))

    assert result.gold == -500
    assert len(result.view.plots) == 10
    assert result.view.plots[9].index == 9
    assert result.view.gold == 1500
    assert farm_helper.get_expansion_cost(10) == 750

    game_state_helper.set_global_state("max_plots", 10)
    with pytest.raises(InvalidPlotError):
        asyncio.run(farm_helper.expand_plots(OWNER, NOW))


def test_grant_item_adds_and_removes(farm_helper):
    view = asyncio.run(farm_helper.grant_item(OWNER, "fertilizer", 3, NOW))
    assert view.inventory["fertilizer"] == 3

    view = asyncio.run(farm_helper.grant_item(OWNER, "fertilizer", -3, NOW))
    assert "fertilizer" not in view.inventory

    with pytest.raises(RewardUnavailableError):
        asyncio.run(farm_helper.grant_item(OWNER, "fertilizer", -1, NOW))


def test_streak_bonus_provider_multiplies_gold(game_state_helper, crop_helper, quest_helper, logger):
    helper = FarmHelper(game_state_helper, crop_helper, quest_helper, logger,
                        streak_bonus_provider=lambda state, now: 2.0)

    asyncio.run(helper.plant(OWNER, 0, "carrot", NOW))
    result = asyncio.run(helper.harvest(OWNER, 0, NOW + 30))

    assert result.reward.gold == 20
    assert result.reward.xp == 60


def test_leaderboard_orders_by_lifetime_gold(farm_helper):
    asyncio.run(farm_helper.plant("1", 0, "wheat", NOW))
    asyncio.run(farm_helper.harvest("1", 0, NOW + 60))
    asyncio.run(farm_helper.plant("2", 0, "carrot", NOW))
    asyncio.run(farm_helper.harvest("2", 0, NOW + 60))
    asyncio.run(farm_helper.get_farm("3", NOW))

    board = farm_helper.get_sorted_leaderboard()

    assert [e["owner_id"] for e in board] == ["2", "1", "3"]
    assert farm_helper.get_user_rank("1") == 2
    assert farm_helper.get_user_rank("404") is None


class InterleavingGameStateHelper(GameStateHelper):
    """Yields to the event loop after every read so concurrent commands load the same version."""

    async def load_farm(self, owner_id):
        loaded = await super().load_farm(owner_id)
        await asyncio.sleep(0)
        return loaded


def test_concurrent_harvests_pay_exactly_once(config, logger, crop_helper, quest_helper):
    game_state_helper = InterleavingGameStateHelper(config, logger)
    asyncio.run(game_state_helper.load_game_state())
    helper = FarmHelper(game_state_helper, crop_helper, quest_helper, logger)

    asyncio.run(helper.plant(OWNER, 0, "wheat", NOW))
    gold_before = asyncio.run(helper.get_farm(OWNER, NOW)).gold

    async def race():
        return await asyncio.gather(
            helper.harvest(OWNER, 0, NOW + 60),
            helper.harvest(OWNER, 0, NOW + 60),
            return_exceptions=True,
        )

    outcomes = asyncio.run(race())

    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], PlotEmptyError)

    view = asyncio.run(helper.get_farm(OWNER, NOW + 60))
    assert view.gold == gold_before + 5
    assert view.total_harvests == 1


class AlwaysConflictingGameStateHelper(GameStateHelper):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.loads = 0

    async def load_farm(self, owner_id):
        self.loads += 1
        return await super().load_farm(owner_id)

    async def save_farm(self, owner_id, state, expected_version):
        raise VersionConflictError()


def test_retries_are_bounded(config, logger, crop_helper, quest_helper):
    game_state_helper = AlwaysConflictingGameStateHelper(config, logger)
    asyncio.run(game_state_helper.load_game_state())
    helper = FarmHelper(game_state_helper, crop_helper, quest_helper, logger)

    with pytest.raises(VersionConflictError):
        asyncio.run(helper.claim_daily(OWNER, NOW))

    assert game_state_helper.loads == 4


def test_grant_gold_never_goes_negative(farm_helper):
    assert asyncio.run(farm_helper.grant_gold(OWNER, 25, NOW)).gold == 75
    assert asyncio.run(farm_helper.grant_gold(OWNER, -500, NOW)).gold == 0


def test_buying_items_spends_gold_or_gems(farm_helper):
    result = asyncio.run(farm_helper.buy_item(OWNER, "fertilizer", 2, NOW))
    assert (result.gold, result.gems) == (-40, 0)
    assert result.view.gold == 10
    assert result.view.inventory["fertilizer"] == 2

    result = asyncio.run(farm_helper.buy_item(OWNER, "super_fertilizer", 2, NOW))
    assert (result.gold, result.gems) == (0, -8)
    assert result.view.gems == 2
    assert result.view.inventory["super_fertilizer"] == 2


def test_failed_purchases_change_nothing(farm_helper, game_state_helper):
    asyncio.run(farm_helper.buy_item(OWNER, "scarecrow", 2, NOW))
    version = game_state_helper.get_version(OWNER)

    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.buy_item(OWNER, "scarecrow", 1, NOW))
    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.buy_item(OWNER, "well", 1, NOW))
    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.buy_item(OWNER, "fertilizer", 0, NOW))
    with pytest.raises(InsufficientFundsError):
        asyncio.run(farm_helper.buy_item(OWNER, "fertilizer", 3, NOW))
    with pytest.raises(InsufficientFundsError):
        asyncio.run(farm_helper.buy_item(OWNER, "super_fertilizer", 3, NOW))
    with pytest.raises(ItemNotFoundError):
        asyncio.run(farm_helper.buy_item(OWNER, "golden_hoe", 1, NOW))

    view = asyncio.run(farm_helper.get_farm(OWNER, NOW))
    assert view.gold == 40
    assert view.gems == 10
    assert dict(view.inventory) == {"scarecrow": 2}
    assert game_state_helper.get_version(OWNER) == version


def test_fertilizer_speeds_up_a_growing_crop(farm_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    asyncio.run(farm_helper.buy_item(OWNER, "fertilizer", 1, NOW))

    view = asyncio.run(farm_helper.use_item(OWNER, 0, "fertilizer", NOW + 10))
    assert view.plots[0].is_fertilized is True
    assert "fertilizer" not in view.inventory

    # 60s / 1.5 = 40s
    view = asyncio.run(farm_helper.get_farm(OWNER, NOW + 39))
    assert view.plots[0].is_ready is False
    assert view.plots[0].seconds_remaining == 1

    result = asyncio.run(farm_helper.harvest(OWNER, 0, NOW + 40))
    assert result.reward.gold == 5
    assert result.view.plots[0].is_fertilized is False


def test_using_items_rejects_bad_targets(farm_helper, game_state_helper):
    asyncio.run(farm_helper.grant_item(OWNER, "fertilizer", 1, NOW))
    asyncio.run(farm_helper.grant_item(OWNER, "scarecrow", 1, NOW))

    with pytest.raises(PlotEmptyError):
        asyncio.run(farm_helper.use_item(OWNER, 0, "fertilizer", NOW))
    with pytest.raises(InvalidPlotError):
        asyncio.run(farm_helper.use_item(OWNER, 99, "fertilizer", NOW))
    with pytest.raises(ItemNotFoundError):
        asyncio.run(farm_helper.use_item(OWNER, 0, "golden_hoe", NOW))

    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.use_item(OWNER, 0, "super_fertilizer", NOW))
    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.use_item(OWNER, 0, "scarecrow", NOW))

    asyncio.run(farm_helper.grant_item(OWNER, "fertilizer", 1, NOW))
    asyncio.run(farm_helper.use_item(OWNER, 0, "fertilizer", NOW + 1))
    version = game_state_helper.get_version(OWNER)

    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.use_item(OWNER, 0, "fertilizer", NOW + 2))

    view = asyncio.run(farm_helper.get_farm(OWNER, NOW + 2))
    assert view.inventory["fertilizer"] == 1
    assert game_state_helper.get_version(OWNER) == version


def test_fertilizing_a_ready_crop_fails(farm_helper):
    asyncio.run(farm_helper.plant(OWNER, 0, "carrot", NOW))
    asyncio.run(farm_helper.grant_item(OWNER, "fertilizer", 1, NOW))

    with pytest.raises(ItemUnavailableError):
        asyncio.run(farm_helper.use_item(OWNER, 0, "fertilizer", NOW + 30))


def test_plots_of_removed_crops_are_cleared_on_load(farm_helper, game_state_helper, quest_helper, logger):
    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    asyncio.run(farm_helper.plant(OWNER, 1, "carrot", NOW))
    assert game_state_helper.get_version(OWNER) == 2

    pruned = FarmHelper(game_state_helper, CropHelper([c for c in TEST_CROPS if c.id != "wheat"]),
                        quest_helper, logger)
    view = asyncio.run(pruned.get_farm(OWNER, NOW + 10000))

    assert view.plots[0].crop_id is None
    assert view.plots[1].crop_id == "carrot"
    assert view.gold == 35
    assert view.total_harvests == 0
    assert game_state_helper.get_version(OWNER) == 3

    with pytest.raises(PlotEmptyError):
        asyncio.run(pruned.harvest(OWNER, 0, NOW + 10000))

    view = asyncio.run(pruned.plant(OWNER, 0, "carrot", NOW + 10000))
    assert view.plots[0].crop_id == "carrot"
    assert view.gold == 30


def test_orphaned_plot_does_not_block_commands(farm_helper, game_state_helper, quest_helper, logger):
    asyncio.run(farm_helper.plant(OWNER, 0, "wheat", NOW))
    pruned = FarmHelper(game_state_helper, CropHelper([c for c in TEST_CROPS if c.id != "wheat"]),
                        quest_helper, logger)

    with pytest.raises(PlotEmptyError):
        asyncio.run(pruned.harvest(OWNER, 0, NOW + 10000))
    with pytest.raises(NotReadyError):
        asyncio.run(pruned.harvest_all(OWNER, NOW + 10000))

    asyncio.run(pruned.plant(OWNER, 0, "carrot", NOW + 10000))
    result = asyncio.run(pruned.harvest_all(OWNER, NOW + 10030))
    assert result.crop_ids == ("carrot",)
    assert result.reward.gold == 10
