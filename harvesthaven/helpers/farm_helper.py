import dataclasses
import math
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from ..errors import (
    CropLockedError,
    InsufficientFundsError,
    InvalidPlotError,
    ItemUnavailableError,
    NotReadyError,
    PlotEmptyError,
    PlotOccupiedError,
    QuestNotFoundError,
    RewardUnavailableError,
    VersionConflictError,
)
from ..models import (
    AchievementView,
    ClaimResult,
    Crop,
    FarmEvent,
    FarmState,
    FarmView,
    HarvestResult,
    Plot,
    PlotView,
    Profile,
    QuestView,
    Reward,
)
from .crop_helper import CropHelper
from .economy_helper import EconomyHelper
from .game_state_helper import GameStateHelper
from .item_helper import ItemHelper
from .logging_helper import LoggingHelper
from .plot_helper import PlotHelper
from .quest_helper import QuestHelper
from .time_helper import TimeHelper

T = TypeVar("T")

StreakBonusProvider = Callable[[FarmState, float], float]


def no_streak_bonus(state: FarmState, now: float) -> float:
    return 1.0


class FarmHelper:
    """
    The farm aggregate: every command loads one player's whole farm, validates it, applies the pure plot,
    economy and quest transitions, and saves it back conditionally on the version it loaded.

    A failed precondition raises a FarmError before anything is saved. A lost version race reloads and replays
    the command from scratch, so a duplicated harvest finds the plot already empty instead of paying twice.
    """

    def __init__(self, game_state_helper: GameStateHelper, crop_helper: CropHelper, quest_helper: QuestHelper,
                 logger: LoggingHelper, streak_bonus_provider: StreakBonusProvider = no_streak_bonus,
                 item_helper: Optional[ItemHelper] = None):
        self.game_state_helper = game_state_helper
        self.crop_helper = crop_helper
        self.quest_helper = quest_helper
        self.logger = logger
        self.streak_bonus_provider = streak_bonus_provider
        self.item_helper = item_helper if item_helper is not None else ItemHelper([])

    # --- Loading and the optimistic write loop ---

    def _new_farm(self, owner_id: str, now: float) -> FarmState:
        settings = self.game_state_helper.get_settings()
        return FarmState(
            profile=Profile(owner_id=str(owner_id), gold=settings.starting_gold, gems=settings.starting_gems),
            plots=[Plot(index=i) for i in range(settings.initial_plots)],
            quest_book=self.quest_helper.create_book(now),
        )

    def _clear_orphaned_plots(self, owner_id: str, state: FarmState) -> bool:
        """Empties plots growing a crop that is no longer in the catalog. No reward is paid for them."""

        repaired = False
        for i, plot in enumerate(state.plots):
            if plot.is_empty or plot.crop_id in self.crop_helper:
                continue
            self.logger.init_log(
                f"Farm {owner_id}: Plot {plot.index + 1} was growing unknown crop '{plot.crop_id}'. Cleared it.",
                "WARNING")
            state.plots[i] = PlotHelper.cleared(plot)
            repaired = True
        return repaired

    async def _load(self, owner_id: str, now: float) -> Tuple[FarmState, int, bool]:
        """Returns the farm, the version it was loaded at, and whether loading had to repair it."""

        state, version = await self.game_state_helper.load_farm(owner_id)
        if state is None:
            state = self._new_farm(owner_id, now)

        repaired = self._clear_orphaned_plots(owner_id, state)

        book = self.quest_helper.sync_definitions(state.quest_book, now)
        state.quest_book = self.quest_helper.refresh(book, state.counters(), now)
        return state, version, repaired

    async def _execute(self, owner_id: str, now: float, command: str,
                       mutate: Callable[[FarmState], Tuple[T, bool]]) -> Tuple[FarmState, T]:
        """
        Runs `mutate` against a freshly loaded farm and saves the result if it reports a change.
        `mutate` must raise before touching anything when a precondition fails, and must be safe to replay.
        """

        retries = max(0, self.game_state_helper.get_settings().max_command_retries)

        for attempt in range(1, retries + 2):
            state, version, repaired = await self._load(owner_id, now)
            outcome, changed = mutate(state)

            if not changed and not repaired:
                return state, outcome

            try:
                new_version = await self.game_state_helper.save_farm(owner_id, state, version)
            except VersionConflictError:
                self.logger.init_log(
                    f"Farm {owner_id}: '{command}' lost a version race at v{version} "
                    f"(attempt {attempt}/{retries + 1}). Reloading.", "DEBUG")
                continue

            state.profile = dataclasses.replace(state.profile, version=new_version)
            return state, outcome

        self.logger.init_log(
            f"Farm {owner_id}: '{command}' gave up after {retries + 1} conflicting attempts.", "WARNING")
        raise VersionConflictError()

    @staticmethod
    def _plot_at(state: FarmState, plot_index: int) -> Plot:
        if not 0 <= plot_index < len(state.plots):
            raise InvalidPlotError(f"Plot {plot_index + 1} does not exist. Your farm has {len(state.plots)} plots.")
        return state.plots[plot_index]

    def _crop_or_none(self, crop_id: Optional[str]) -> Optional[Crop]:
        if crop_id is None or crop_id not in self.crop_helper:
            return None
        return self.crop_helper.get(crop_id)

    def _log_progress(self, owner_id: str, old_level: int, state: FarmState, unlocked: Sequence[str]):
        if state.profile.level > old_level:
            self.logger.init_log(f"Farm {owner_id}: Level up {old_level} -> {state.profile.level}.", "INFO")
        for achievement_id in unlocked:
            self.logger.init_log(f"Farm {owner_id}: Achievement '{achievement_id}' unlocked.", "INFO")

    # --- Read side ---

    def build_view(self, state: FarmState, now: float) -> FarmView:
        profile = state.profile
        level, xp_into_level, xp_for_next = EconomyHelper.level_progress(profile.xp)

        plot_views = []
        for plot in state.plots:
            crop = self._crop_or_none(plot.crop_id)
            status = PlotHelper.derive(plot, crop, now)
            plot_views.append(PlotView(
                index=plot.index,
                crop_id=plot.crop_id,
                crop_name=crop.name if crop else plot.crop_id,
                growth_percent=status.growth_percent,
                is_ready=status.is_ready,
                is_watered=PlotHelper.is_watered(plot),
                seconds_remaining=status.seconds_remaining,
                is_fertilized=PlotHelper.is_fertilized(plot),
            ))

        quest_views = []
        for quest in state.quest_book.quests:
            definition = self.quest_helper.quest_definitions.get(quest.id)
            quest_views.append(QuestView(
                id=quest.id,
                name=definition.name if definition else quest.id,
                requirement_kind=quest.requirement_kind,
                target=quest.target,
                progress=quest.progress,
                completed=quest.completed,
                claimed=quest.claimed,
                reward_gold=definition.reward_gold if definition else 0,
                reward_gems=definition.reward_gems if definition else 0,
                seconds_until_reset=max(0, math.ceil(quest.reset_at - now)),
            ))

        counters = state.counters()
        achievement_views = []
        for achievement in state.quest_book.achievements:
            definition = self.quest_helper.achievement_definitions.get(achievement.id)
            achievement_views.append(AchievementView(
                id=achievement.id,
                name=definition.name if definition else achievement.id,
                requirement_kind=achievement.requirement_kind,
                threshold=achievement.threshold,
                progress=min(achievement.threshold, counters.get(achievement.requirement_kind, 0)),
                unlocked=achievement.unlocked,
                claimed=achievement.claimed,
            ))

        return FarmView(
            owner_id=profile.owner_id,
            gold=profile.gold,
            gems=profile.gems,
            level=max(profile.level, level),
            xp=profile.xp,
            xp_into_level=xp_into_level,
            xp_for_next_level=xp_for_next,
            total_harvests=profile.total_harvests,
            total_gold_earned=profile.total_gold_earned,
            version=profile.version,
            plots=tuple(plot_views),
            quests=tuple(quest_views),
            achievements=tuple(achievement_views),
            inventory=MappingProxyType(dict(state.inventory)),
            as_of=now,
        )

    async def get_farm(self, owner_id: str, now: float) -> FarmView:
        """
        Read-only view of a farm at `now`. A farm seen for the first time is provisioned and saved, and so is
        a farm whose orphaned plots were just cleared.
        """

        state, version, repaired = await self._load(owner_id, now)

        if version == 0 or repaired:
            try:
                new_version = await self.game_state_helper.save_farm(owner_id, state, version)
                state.profile = dataclasses.replace(state.profile, version=new_version)
                if version == 0:
                    self.logger.init_log(f"Farm {owner_id}: Provisioned with {len(state.plots)} plots.", "INFO")
            except VersionConflictError:
                state, _, _ = await self._load(owner_id, now)

        return self.build_view(state, now)

    # --- Plot commands ---

    async def plant(self, owner_id: str, plot_index: int, crop_id: str, now: float) -> FarmView:
        def mutate(state: FarmState) -> Tuple[None, bool]:
            plot = self._plot_at(state, plot_index)
            if not plot.is_empty:
                raise PlotOccupiedError(f"Plot {plot_index + 1} is already growing {plot.crop_id}.")

            crop = self.crop_helper.get(crop_id)
            profile = state.profile

            if crop.unlock_level > profile.level:
                raise CropLockedError(f"{crop.name} unlocks at level {crop.unlock_level}. You are level "
                                      f"{profile.level}.")
            if profile.gold < crop.seed_cost:
                raise InsufficientFundsError(f"{crop.name} seeds cost {crop.seed_cost:,} gold. You have "
                                             f"{profile.gold:,}.")

            state.profile = dataclasses.replace(profile, gold=profile.gold - crop.seed_cost)
            state.plots[plot_index] = PlotHelper.planted(plot, crop, now)
            state.quest_book = self.quest_helper.on_event(
                state.quest_book, FarmEvent(kind="plant", tier=crop.tier), state.counters(), now)
            return None, True

        state, _ = await self._execute(owner_id, now, "plant", mutate)
        return self.build_view(state, now)

    async def water(self, owner_id: str, plot_index: int, now: float) -> FarmView:
        """Waters a plot. Watering an already watered or already ready plot succeeds without changing anything."""

        def mutate(state: FarmState) -> Tuple[bool, bool]:
            plot = self._plot_at(state, plot_index)
            if plot.is_empty:
                raise PlotEmptyError(f"Plot {plot_index + 1} has nothing to water.")

            crop = self._crop_or_none(plot.crop_id)
            if PlotHelper.is_watered(plot) or PlotHelper.derive(plot, crop, now).is_ready:
                return False, False

            state.plots[plot_index] = PlotHelper.watered(plot, now)
            state.quest_book = self.quest_helper.on_event(
                state.quest_book, FarmEvent(kind="water"), state.counters(), now)
            return True, True

        state, _ = await self._execute(owner_id, now, "water", mutate)
        return self.build_view(state, now)

    def _harvest_plots(self, state: FarmState, plot_indices: Sequence[int], now: float) -> Dict[str, Any]:
        """Pays out and clears the given ready plots. Preconditions must already be checked by the caller."""

        streak_bonus = self.streak_bonus_provider(state, now)
        book_before = state.quest_book
        old_level = state.profile.level

        total_gold = 0
        total_xp = 0
        crop_ids: List[str] = []
        events: List[FarmEvent] = []

        for plot_index in plot_indices:
            plot = state.plots[plot_index]
            crop = self.crop_helper.get(plot.crop_id)
            reward = EconomyHelper.reward_for(crop, streak_bonus)

            profile = state.profile
            profile = dataclasses.replace(
                profile,
                gold=profile.gold + reward.gold,
                total_harvests=profile.total_harvests + 1,
                total_gold_earned=profile.total_gold_earned + reward.gold,
            )
            state.profile = EconomyHelper.apply_xp(profile, reward.xp)
            state.plots[plot_index] = PlotHelper.cleared(plot)

            total_gold += reward.gold
            total_xp += reward.xp
            crop_ids.append(crop.id)
            events.append(FarmEvent(kind="harvest", tier=crop.tier))
            events.append(FarmEvent(kind="earn", amount=reward.gold))

        state.quest_book = self.quest_helper.on_events(book_before, events, state.counters(), now)

        return {
            "reward": Reward(gold=total_gold, xp=total_xp),
            "crop_ids": tuple(crop_ids),
            "old_level": old_level,
            "quest_deltas": QuestHelper.quest_deltas(book_before, state.quest_book),
            "unlocked": QuestHelper.newly_unlocked(book_before, state.quest_book),
        }

    def _harvest_result(self, owner_id: str, state: FarmState, outcome: Dict[str, Any], now: float) -> HarvestResult:
        self._log_progress(owner_id, outcome["old_level"], state, outcome["unlocked"])
        return HarvestResult(
            view=self.build_view(state, now),
            reward=outcome["reward"],
            crop_ids=outcome["crop_ids"],
            leveled_up=state.profile.level > outcome["old_level"],
            new_level=state.profile.level,
            quest_deltas=outcome["quest_deltas"],
            unlocked_achievements=outcome["unlocked"],
        )

    async def harvest(self, owner_id: str, plot_index: int, now: float) -> HarvestResult:
        def mutate(state: FarmState) -> Tuple[Dict[str, Any], bool]:
            plot = self._plot_at(state, plot_index)
            if plot.is_empty:
                raise PlotEmptyError(f"Plot {plot_index + 1} has nothing to harvest.")

            crop = self.crop_helper.get(plot.crop_id)
            status = PlotHelper.derive(plot, crop, now)
            if not status.is_ready:
                raise NotReadyError(f"{crop.name} in plot {plot_index + 1} is {status.growth_percent}% grown "
                                    f"({status.seconds_remaining}s remaining).")

            return self._harvest_plots(state, [plot_index], now), True

        state, outcome = await self._execute(owner_id, now, "harvest", mutate)
        return self._harvest_result(owner_id, state, outcome, now)

    async def harvest_all(self, owner_id: str, now: float) -> HarvestResult:
        def mutate(state: FarmState) -> Tuple[Dict[str, Any], bool]:
            ready = [
                plot.index for plot in state.plots
                if PlotHelper.derive(plot, self._crop_or_none(plot.crop_id), now).is_ready
            ]
            if not ready:
                raise NotReadyError("No crops are ready to harvest.")
            return self._harvest_plots(state, ready, now), True

        state, outcome = await self._execute(owner_id, now, "harvest_all", mutate)
        return self._harvest_result(owner_id, state, outcome, now)

    # --- Rewards ---

    async def claim_quest(self, owner_id: str, quest_id: str, now: float) -> ClaimResult:
        def mutate(state: FarmState) -> Tuple[Tuple[int, int], bool]:
            quest = state.quest_book.get_quest(quest_id)
            definition = self.quest_helper.quest_definitions.get(quest_id)
            if quest is None or definition is None:
                raise QuestNotFoundError(f"No daily quest with id '{quest_id}'.")
            if quest.claimed:
                raise RewardUnavailableError(f"You already claimed '{definition.name}' today.")
            if not quest.completed:
                raise RewardUnavailableError(
                    f"'{definition.name}' is not complete yet ({quest.progress}/{quest.target}).")

            profile = state.profile
            state.profile = dataclasses.replace(profile, gold=profile.gold + definition.reward_gold,
                                                gems=profile.gems + definition.reward_gems)
            state.quest_book = dataclasses.replace(state.quest_book, quests=tuple(
                dataclasses.replace(q, claimed=True) if q.id == quest_id else q for q in state.quest_book.quests
            ))
            return (definition.reward_gold, definition.reward_gems), True

        state, (gold, gems) = await self._execute(owner_id, now, "claim_quest", mutate)
        return ClaimResult(view=self.build_view(state, now), gold=gold, gems=gems)

    async def claim_achievement(self, owner_id: str, achievement_id: str, now: float) -> ClaimResult:
        def mutate(state: FarmState) -> Tuple[Tuple[int, int], bool]:
            achievement = state.quest_book.get_achievement(achievement_id)
            definition = self.quest_helper.achievement_definitions.get(achievement_id)
            if achievement is None or definition is None:
                raise QuestNotFoundError(f"No achievement with id '{achievement_id}'.")
            if not achievement.unlocked:
                raise RewardUnavailableError(f"'{definition.name}' has not been unlocked yet.")
            if achievement.claimed:
                raise RewardUnavailableError(f"You already claimed '{definition.name}'.")

            profile = state.profile
            state.profile = dataclasses.replace(profile, gold=profile.gold + definition.reward_gold,
                                                gems=profile.gems + definition.reward_gems)
            state.quest_book = dataclasses.replace(state.quest_book, achievements=tuple(
                dataclasses.replace(a, claimed=True) if a.id == achievement_id else a
                for a in state.quest_book.achievements
            ))
            return (definition.reward_gold, definition.reward_gems), True

        state, (gold, gems) = await self._execute(owner_id, now, "claim_achievement", mutate)
        return ClaimResult(view=self.build_view(state, now), gold=gold, gems=gems)

    async def claim_daily(self, owner_id: str, now: float) -> ClaimResult:
        settings = self.game_state_helper.get_settings()
        today = TimeHelper.get_local_date(now, settings.daily_reset_timezone)

        def mutate(state: FarmState) -> Tuple[int, bool]:
            profile = state.profile
            if profile.last_daily == today:
                raise RewardUnavailableError(f"You already collected your daily reward for {today}.")

            state.profile = dataclasses.replace(profile, gold=profile.gold + settings.daily_reward_gold,
                                                last_daily=today)
            return settings.daily_reward_gold, True

        state, gold = await self._execute(owner_id, now, "claim_daily", mutate)
        return ClaimResult(view=self.build_view(state, now), gold=gold, gems=0)

    # --- Items ---

    async def buy_item(self, owner_id: str, item_id: str, quantity: int, now: float) -> ClaimResult:
        """Buys `quantity` of an item from the shop. The returned ClaimResult carries the (negative) cost."""

        item = self.item_helper.get(item_id)
        if quantity < 1:
            raise ItemUnavailableError("You must buy at least one item.")

        gold_cost = item.price_gold * quantity
        gem_cost = item.price_gems * quantity

        def mutate(state: FarmState) -> Tuple[None, bool]:
            profile = state.profile
            if item.unlock_level > profile.level:
                raise ItemUnavailableError(f"{item.name} unlocks at level {item.unlock_level}. You are level "
                                           f"{profile.level}.")

            owned = state.inventory.get(item.id, 0)
            if item.max_quantity > 0 and owned + quantity > item.max_quantity:
                raise ItemUnavailableError(f"You can own at most {item.max_quantity} {item.name}. You have {owned}.")

            if profile.gold < gold_cost:
                raise InsufficientFundsError(f"{quantity}x {item.name} costs {gold_cost:,} gold. You have "
                                             f"{profile.gold:,}.")
            if profile.gems < gem_cost:
                raise InsufficientFundsError(f"{quantity}x {item.name} costs {gem_cost:,} gems. You have "
                                             f"{profile.gems:,}.")

            state.profile = dataclasses.replace(profile, gold=profile.gold - gold_cost, gems=profile.gems - gem_cost)
            state.inventory[item.id] = owned + quantity
            return None, True

        state, _ = await self._execute(owner_id, now, "buy_item", mutate)
        self.logger.init_log(f"Farm {owner_id}: Bought {quantity}x '{item.id}' for {gold_cost} gold, "
                             f"{gem_cost} gems.", "DEBUG")
        return ClaimResult(view=self.build_view(state, now), gold=-gold_cost, gems=-gem_cost)

    async def use_item(self, owner_id: str, plot_index: int, item_id: str, now: float) -> FarmView:
        """Uses one item from the inventory on a growing plot. Only growth boosters have a plot effect."""

        item = self.item_helper.get(item_id)

        def mutate(state: FarmState) -> Tuple[None, bool]:
            plot = self._plot_at(state, plot_index)
            if plot.is_empty:
                raise PlotEmptyError(f"Plot {plot_index + 1} has nothing to use {item.name} on.")

            owned = state.inventory.get(item.id, 0)
            if owned < 1:
                raise ItemUnavailableError(f"You don't have any {item.name}.")
            if not ItemHelper.is_usable_on_plot(item):
                raise ItemUnavailableError(f"{item.name} can't be used on a plot.")
            if PlotHelper.is_fertilized(plot):
                raise ItemUnavailableError(f"Plot {plot_index + 1} has already been fertilized.")
            if PlotHelper.derive(plot, self._crop_or_none(plot.crop_id), now).is_ready:
                raise ItemUnavailableError(f"Plot {plot_index + 1} is already ready to harvest.")

            state.plots[plot_index] = PlotHelper.fertilized(plot, now, item.effect_value)
            if owned == 1:
                del state.inventory[item.id]
            else:
                state.inventory[item.id] = owned - 1
            return None, True

        state, _ = await self._execute(owner_id, now, "use_item", mutate)
        return self.build_view(state, now)

    # --- Farm layout and administration ---

    def get_expansion_cost(self, plot_count: int) -> int:
        settings = self.game_state_helper.get_settings()
        return EconomyHelper.plot_expansion_cost(plot_count, settings.initial_plots,
                                                 settings.plot_expansion_base_cost,
                                                 settings.plot_expansion_multiplier)

    async def expand_plots(self, owner_id: str, now: float) -> ClaimResult:
        """Buys one more empty plot. The returned ClaimResult carries the (negative) gold spent."""

        settings = self.game_state_helper.get_settings()

        def mutate(state: FarmState) -> Tuple[int, bool]:
            if len(state.plots) >= settings.max_plots:
                raise InvalidPlotError(f"Your farm is already at the maximum of {settings.max_plots} plots.")

            cost = self.get_expansion_cost(len(state.plots))
            profile = state.profile
            if profile.gold < cost:
                raise InsufficientFundsError(f"The next plot costs {cost:,} gold. You have {profile.gold:,}.")

            state.profile = dataclasses.replace(profile, gold=profile.gold - cost)
            state.plots.append(Plot(index=len(state.plots)))
            state.quest_book = self.quest_helper.unlock_achievements(state.quest_book, state.counters())
            return cost, True

        state, cost = await self._execute(owner_id, now, "expand_plots", mutate)
        return ClaimResult(view=self.build_view(state, now), gold=-cost, gems=0)

    async def set_gold(self, owner_id: str, amount: int, now: float) -> FarmView:
        def mutate(state: FarmState) -> Tuple[None, bool]:
            state.profile = dataclasses.replace(state.profile, gold=max(0, amount))
            return None, True

        state, _ = await self._execute(owner_id, now, "set_gold", mutate)
        return self.build_view(state, now)

    async def grant_gold(self, owner_id: str, amount: int, now: float) -> FarmView:
        """Adds (or with a negative amount removes) gold. The balance never drops below zero."""

        def mutate(state: FarmState) -> Tuple[None, bool]:
            state.profile = dataclasses.replace(state.profile, gold=max(0, state.profile.gold + amount))
            return None, True

        state, _ = await self._execute(owner_id, now, "grant_gold", mutate)
        return self.build_view(state, now)

    async def grant_item(self, owner_id: str, item_id: str, quantity: int, now: float) -> FarmView:
        """Adds (or with a negative quantity removes) inventory items. Counts never go below zero."""

        def mutate(state: FarmState) -> Tuple[None, bool]:
            current = state.inventory.get(item_id, 0)
            if quantity < 0 and current < -quantity:
                raise RewardUnavailableError(f"Only {current} of '{item_id}' in inventory.")

            new_amount = current + quantity
            if new_amount <= 0:
                state.inventory.pop(item_id, None)
            else:
                state.inventory[item_id] = new_amount
            return None, True

        state, _ = await self._execute(owner_id, now, "grant_item", mutate)
        return self.build_view(state, now)

    # --- Leaderboard ---

    def get_sorted_leaderboard(self) -> List[Dict[str, Any]]:
        entries = []
        for owner_id, record in self.game_state_helper.get_all_user_data().items():
            profile = record.get("profile", {})
            entries.append({
                "owner_id": owner_id,
                "total_gold_earned": profile.get("total_gold_earned", 0),
                "level": profile.get("level", 1),
            })
        return sorted(entries, key=lambda e: (e["total_gold_earned"], e["level"]), reverse=True)

    def get_user_rank(self, owner_id: str) -> Optional[int]:
        for i, entry in enumerate(self.get_sorted_leaderboard()):
            if entry["owner_id"] == str(owner_id):
                return i + 1
        return None
