from types import MappingProxyType
from typing import List, Tuple

from ..errors import ItemNotFoundError
from ..models import ItemDefinition


class ItemHelper:
    """The item shop catalog. Like the crop catalog, it is read-only once built."""

    GROWTH_SPEED_EFFECT = "growth_speed"

    def __init__(self, items_list: List[ItemDefinition]):
        ordered = sorted(items_list, key=lambda i: (i.unlock_level, i.price_gems, i.price_gold, i.id))
        self._items: Tuple[ItemDefinition, ...] = tuple(ordered)
        self._items_by_id = MappingProxyType({i.id: i for i in ordered})

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items_by_id

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> ItemDefinition:
        item = self._items_by_id.get(item_id)
        if item is None:
            raise ItemNotFoundError(f"No item with id '{item_id}' exists.")
        return item

    def get_all(self) -> Tuple[ItemDefinition, ...]:
        return self._items

    def find(self, query: str) -> ItemDefinition:
        normalized = query.strip().lower().replace(" ", "_")
        if normalized in self._items_by_id:
            return self._items_by_id[normalized]

        for item in self._items:
            if item.name.lower() == query.strip().lower():
                return item

        raise ItemNotFoundError(f"No item named '{query}' exists.")

    @classmethod
    def is_usable_on_plot(cls, item: ItemDefinition) -> bool:
        return item.effect_type == cls.GROWTH_SPEED_EFFECT and item.effect_value > 1.0
