import dataclasses
import json
import pathlib
from typing import Any, Dict, List

from ..models import Crop, QuestDefinition, AchievementDefinition, ItemDefinition
from .logging_helper import LoggingHelper


class DataHelper:
    """
    Handles the loading and validation of all JSON data files from the data directory.
    This class is responsible for parsing raw JSON into structured dataclass objects.
    It operates in a read-only manner on the data path.
    """

    FALLBACK_CROPS = [
        {"id": "carrot", "name": "Carrot", "tier": 1, "grow_duration_seconds": 30, "base_gold_yield": 10,
         "base_xp_yield": 5, "seed_cost": 5},
    ]

    def __init__(self, data_path_obj: pathlib.Path, logger: LoggingHelper):
        self.data_path = data_path_obj
        self.logger = logger

        self.crops: List[Crop] = []
        self.quests: List[QuestDefinition] = []
        self.achievements: List[AchievementDefinition] = []
        self.items: List[ItemDefinition] = []

    def load_all_data(self):
        """Master method to load all data files."""

        self.logger.init_log("Data loading process initiated.", "INFO")

        self.crops = self._load_crops_data()
        self.quests = self._load_quests_data()
        self.achievements = self._load_achievements_data()
        self.items = self._load_items_data()

        self.logger.init_log("All data files loaded and processed.", "INFO")

    def _load_json_file(self, filename: str, default_data: Any) -> Any:
        """Generic JSON file loader with validation and logging. Does not write to disk."""

        file_path = self.data_path / filename
        log_prefix = f"Data Load ({filename}): "
        try:
            if file_path.exists():
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)

                if data:
                    self.logger.init_log(f"{log_prefix}Successfully loaded {len(data)} entries.", "INFO")
                    return data
                else:
                    self.logger.init_log(f"{log_prefix}File is empty. Using default fallback data.", "WARNING")
                    return default_data
            else:
                self.logger.init_log(
                    f"{log_prefix}File not found. This is a critical error if not intended. "
                    "Using default fallback data.", "ERROR"
                )
                return default_data
        except (OSError, json.JSONDecodeError) as e:
            self.logger.init_log(f"{log_prefix}Failed to load or parse: {e}. Using default fallback data.", "ERROR")
            return default_data

    @staticmethod
    def _check_field_types(obj):
        """Raises TypeError when a JSON value does not match the plain int, float, str or bool field it fills."""

        for f in dataclasses.fields(obj):
            value = getattr(obj, f.name)
            expected = f.type
            if expected not in (int, float, str, bool):
                continue

            if value is None:
                valid = False
            elif expected is float:
                valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            elif expected is int:
                valid = isinstance(value, int) and not isinstance(value, bool)
            else:
                valid = isinstance(value, expected)

            if not valid:
                raise TypeError(f"field '{f.name}' expects {expected.__name__}, got {type(value).__name__}")

    def _build_entries(self, filename: str, raw_entries: List[Dict[str, Any]], factory) -> List[Any]:
        """Builds one dataclass per entry, skipping (and logging) malformed entries instead of aborting the load."""

        entries = []
        seen_ids = set()
        for entry in raw_entries:
            if not isinstance(entry, dict):
                self.logger.init_log(f"Data Load ({filename}): Skipping non-object entry {entry!r}.", "WARNING")
                continue

            if 'name' not in entry and 'id' in entry:
                entry['name'] = entry['id']

            try:
                obj = factory(**entry)
                self._check_field_types(obj)
            except TypeError as e:
                self.logger.init_log(f"Data Load ({filename}): Skipping malformed entry {entry.get('id')!r}: {e}",
                                     "WARNING")
                continue

            if obj.id in seen_ids:
                self.logger.init_log(f"Data Load ({filename}): Duplicate id '{obj.id}'. Keeping the first one.",
                                     "WARNING")
                continue

            seen_ids.add(obj.id)
            entries.append(obj)
        return entries

    def _load_crops_data(self) -> List[Crop]:
        data = self._load_json_file("crops.json", self.FALLBACK_CROPS)
        crops = self._build_entries("crops.json", data, Crop)

        for crop in crops:
            if not 1 <= crop.tier <= 5 or crop.grow_duration_seconds <= 0:
                self.logger.init_log(
                    f"Data Load (crops.json): Crop '{crop.id}' has tier {crop.tier} and duration "
                    f"{crop.grow_duration_seconds}s. Expected tier 1-5 and a positive duration.", "WARNING")

        valid = [c for c in crops if 1 <= c.tier <= 5 and c.grow_duration_seconds > 0]
        if not valid:
            self.logger.init_log("Data Load (crops.json): No valid crops. Using default fallback data.", "ERROR")
            valid = [Crop(**c) for c in self.FALLBACK_CROPS]
        return valid

    def _load_quests_data(self) -> List[QuestDefinition]:
        data = self._load_json_file("quests.json", [])
        quests = self._build_entries("quests.json", data, QuestDefinition)
        if not quests:
            self.logger.init_log("Data Load (quests.json): No quest data loaded. Daily quests are disabled.",
                                 "WARNING")
        return [q for q in quests if q.target > 0]

    def _load_achievements_data(self) -> List[AchievementDefinition]:
        data = self._load_json_file("achievements.json", [])
        achievements = self._build_entries("achievements.json", data, AchievementDefinition)
        if not achievements:
            self.logger.init_log("Data Load (achievements.json): No achievement data loaded.", "WARNING")
        return [a for a in achievements if a.threshold > 0]

    def _load_items_data(self) -> List[ItemDefinition]:
        data = self._load_json_file("items.json", [])
        items = self._build_entries("items.json", data, ItemDefinition)
        if not items:
            self.logger.init_log("Data Load (items.json): No item data loaded. The shop is empty.", "WARNING")

        valid = []
        for item in items:
            if item.price_gold < 0 or item.price_gems < 0 or item.price_gold + item.price_gems == 0:
                self.logger.init_log(f"Data Load (items.json): Item '{item.id}' has no valid price. Skipping.",
                                     "WARNING")
                continue
            valid.append(item)
        return valid
