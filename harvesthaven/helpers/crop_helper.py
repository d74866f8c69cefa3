from types import MappingProxyType
from typing import List, Tuple

from ..errors import CropNotFoundError
from ..models import Crop


class CropHelper:
    """
    The crop catalog. Built once from the dataclass objects provided by DataHelper and never mutated afterwards,
    so it is shared by every concurrent command without locking.
    """

    def __init__(self, crops_list: List[Crop]):
        ordered = sorted(crops_list, key=lambda c: (c.tier, c.unlock_level, c.id))
        self._crops: Tuple[Crop, ...] = tuple(ordered)
        self._crops_by_id = MappingProxyType({c.id: c for c in ordered})

    def __contains__(self, crop_id: str) -> bool:
        return crop_id in self._crops_by_id

    def __len__(self) -> int:
        return len(self._crops)

    def get(self, crop_id: str) -> Crop:
        crop = self._crops_by_id.get(crop_id)
        if crop is None:
            raise CropNotFoundError(f"No crop with id '{crop_id}' exists.")
        return crop

    def get_all(self) -> Tuple[Crop, ...]:
        return self._crops

    def get_unlocked(self, level: int) -> Tuple[Crop, ...]:
        return tuple(c for c in self._crops if c.unlock_level <= level)

    def find(self, query: str) -> Crop:
        """Resolves a player-typed crop reference by id first, then by case-insensitive name."""

        normalized = query.strip().lower().replace(" ", "_")
        if normalized in self._crops_by_id:
            return self._crops_by_id[normalized]

        for crop in self._crops:
            if crop.name.lower() == query.strip().lower():
                return crop

        raise CropNotFoundError(f"No crop named '{query}' exists.")
