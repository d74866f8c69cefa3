import asyncio
import dataclasses
from typing import Any, Dict, List, Optional, Tuple

from ..errors import PersistenceTimeoutError, VersionConflictError
from ..models import (
    Achievement,
    DailyQuest,
    FarmSettings,
    FarmState,
    Plot,
    Profile,
    QuestBook,
)
from .logging_helper import LoggingHelper


class GameStateHelper:
    """
    The single source of truth for all persistent game data.
    Manages the in-memory state and is the sole gatekeeper for disk I/O with Red's Config.

    Each farm record carries a version stamp. save_farm only succeeds when the caller saw the latest version;
    the check and the in-memory swap happen with no await in between, so they are atomic on the event loop.
    """

    def __init__(self, config_object, logger: LoggingHelper):
        self.config = config_object
        self.logger = logger
        self.game_state: Dict[str, Any] = {"users": {}, "global_state": {}}

    async def load_game_state(self):
        """Loads the entire game state from disk into memory and initializes defaults."""

        self.game_state = await self.config.game_state()

        self.game_state.setdefault("users", {})
        self.game_state.setdefault("global_state", {})

        settings = self.game_state["global_state"]
        for key, value in dataclasses.asdict(FarmSettings()).items():
            settings.setdefault(key, value)

        await self.logger.log_to_discord(
            f"System Startup: Game state loaded into memory ({len(self.game_state['users'])} farms).", "INFO")

    # --- Global settings ---

    def get_global_state(self, key: str, default: Any = None) -> Any:
        return self.game_state.get("global_state", {}).get(key, default)

    def set_global_state(self, key: str, value: Any):
        self.game_state.setdefault("global_state", {})[key] = value

    def get_settings(self) -> FarmSettings:
        stored = self.game_state.get("global_state", {})
        known = {f.name for f in dataclasses.fields(FarmSettings)}
        return FarmSettings(**{k: v for k, v in stored.items() if k in known})

    # --- Raw user records ---

    def get_all_user_data(self) -> Dict[str, Dict]:
        return self.game_state.get("users", {})

    def get_user_data(self, owner_id: str) -> Dict[str, Any]:
        return self.game_state.get("users", {}).get(str(owner_id), {})

    def get_version(self, owner_id: str) -> int:
        return self.get_user_data(owner_id).get("version", 0)

    # --- Serialization ---

    @staticmethod
    def _serialize_farm(state: FarmState, version: int) -> Dict[str, Any]:
        profile = dataclasses.asdict(state.profile)
        profile.pop("owner_id")
        profile.pop("version")

        return {
            "version": version,
            "profile": profile,
            "plots": [dataclasses.asdict(p) for p in state.plots],
            "inventory": dict(state.inventory),
            "quests": [dataclasses.asdict(q) for q in state.quest_book.quests],
            "achievements": [dataclasses.asdict(a) for a in state.quest_book.achievements],
        }

    @staticmethod
    def _deserialize_farm(owner_id: str, record: Dict[str, Any]) -> FarmState:
        version = record.get("version", 0)
        profile = Profile(owner_id=str(owner_id), version=version, **record.get("profile", {}))

        plots: List[Plot] = []
        for i, plot_dict in enumerate(record.get("plots", [])):
            plot_dict = dict(plot_dict)
            plot_dict.setdefault("index", i)
            plots.append(Plot(**plot_dict))

        return FarmState(
            profile=profile,
            plots=plots,
            inventory=dict(record.get("inventory", {})),
            quest_book=QuestBook(
                quests=tuple(DailyQuest(**q) for q in record.get("quests", [])),
                achievements=tuple(Achievement(**a) for a in record.get("achievements", [])),
            ),
        )

    # --- Persistence gateway ---

    async def load_farm(self, owner_id: str) -> Tuple[Optional[FarmState], int]:
        """Returns a private copy of the stored farm and its version, or (None, 0) if the farm was never saved."""

        record = self.get_user_data(owner_id)
        if not record:
            return None, 0

        return self._deserialize_farm(owner_id, record), record.get("version", 0)

    async def save_farm(self, owner_id: str, state: FarmState, expected_version: int) -> int:
        """
        Stores the farm if nobody else saved it since `expected_version` was loaded, then commits to disk.
        Raises VersionConflictError on a stale write and PersistenceTimeoutError if the disk commit hangs;
        in the latter case the in-memory record is rolled back.
        """

        owner_key = str(owner_id)
        users = self.game_state.setdefault("users", {})
        previous = users.get(owner_key)
        current_version = previous.get("version", 0) if previous else 0

        if current_version != expected_version:
            raise VersionConflictError(
                f"Farm {owner_key} is at version {current_version}, expected {expected_version}.")

        new_version = expected_version + 1
        new_record = self._serialize_farm(state, new_version)
        users[owner_key] = new_record

        timeout = self.get_settings().persistence_timeout_seconds
        try:
            await asyncio.wait_for(self.commit_to_disk(), timeout=timeout)
        except asyncio.TimeoutError:
            if users.get(owner_key) is new_record:
                if previous is None:
                    users.pop(owner_key, None)
                else:
                    users[owner_key] = previous
                self.logger.init_log(
                    f"Persistence: Commit of farm {owner_key} v{new_version} timed out after {timeout}s. "
                    f"Rolled back to v{current_version}.", "ERROR")
                raise PersistenceTimeoutError()

            # A later save already built on this record, so the change stands and is carried by that save.
            self.logger.init_log(
                f"Persistence: Commit of farm {owner_key} v{new_version} timed out but was superseded by "
                f"v{users[owner_key].get('version')}.", "WARNING")

        return new_version

    async def commit_to_disk(self):
        await self.config.game_state.set(self.game_state)
