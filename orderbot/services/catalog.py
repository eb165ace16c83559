from __future__ import annotations

import logging
import random
import re
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Protocol

import yaml

from ..models import FoodItem
from .errors import CatalogError

logger = logging.getLogger(__name__)

MENU_PATH = Path(__file__).resolve().parents[1] / "data" / "menu.yaml"
RECOMMENDATION_LIMIT = 5
RANDOM_TAG = "random"
IMAGE_BASE_URL = "https://example.com/images"


class Catalog(Protocol):
    """Read contract of the menu used by the dialogue engine."""

    async def list_categories(self) -> List[str]: ...

    async def list_items_by_category(self, category: str) -> List[FoodItem]: ...

    async def get_item_by_id(self, food_id: int) -> FoodItem | None: ...

    async def search_items_by_name(self, text: str) -> List[FoodItem]: ...

    async def search_by_tag(self, tag: str | None) -> List[FoodItem]: ...

    async def get_category_image(self, category: str) -> str | None: ...


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class InMemoryCatalog:
    """Menu held in memory; the default instance is seeded from ``data/menu.yaml``."""

    def __init__(
        self,
        items: Iterable[FoodItem],
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._items: Dict[int, FoodItem] = {}
        for item in items:
            self._items[item.id] = item
        self._rng = rng or random.Random()
        self._lock = Lock()

    @classmethod
    def from_yaml(cls, path: Path | str | None = None, *, rng: random.Random | None = None) -> "InMemoryCatalog":
        menu_path = Path(path) if path else MENU_PATH
        if not menu_path.exists():
            raise FileNotFoundError(f"Menu file not found at {menu_path}")
        with menu_path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
        items = _parse_menu(data)
        logger.info("Loaded %s menu items from %s", len(items), menu_path)
        return cls(items, rng=rng)

    def _snapshot(self) -> List[FoodItem]:
        with self._lock:
            return [item.model_copy() for item in self._items.values()]

    def set_availability(self, food_id: int, available: bool) -> None:
        with self._lock:
            item = self._items.get(food_id)
            if item is None:
                raise CatalogError(f"Unknown food id {food_id}", reason="unknown_food")
            self._items[food_id] = item.model_copy(update={"available": available})

    async def list_categories(self) -> List[str]:
        categories: List[str] = []
        for item in self._snapshot():
            if item.available and item.category not in categories:
                categories.append(item.category)
        return categories

    async def list_items_by_category(self, category: str) -> List[FoodItem]:
        wanted = (category or "").strip().lower()
        return [
            item
            for item in self._snapshot()
            if item.available and item.category.lower() == wanted
        ]

    async def get_item_by_id(self, food_id: int) -> FoodItem | None:
        with self._lock:
            item = self._items.get(food_id)
        if item is None or not item.available:
            return None
        return item.model_copy()

    async def search_items_by_name(self, text: str) -> List[FoodItem]:
        needle = (text or "").strip().lower()
        if not needle:
            return []
        return [
            item
            for item in self._snapshot()
            if item.available and needle in item.name.lower()
        ]

    async def search_by_tag(self, tag: str | None) -> List[FoodItem]:
        available = [item for item in self._snapshot() if item.available]
        needle = (tag or "").strip().lower()
        if not needle or needle == RANDOM_TAG:
            return [self._rng.choice(available)] if available else []
        matches = [
            item
            for item in available
            if needle in item.name.lower()
            or needle in item.description.lower()
            or needle in item.category.lower()
            or any(needle == item_tag.lower() for item_tag in item.tags)
        ]
        return matches[:RECOMMENDATION_LIMIT]

    async def get_category_image(self, category: str) -> str | None:
        for item in await self.list_items_by_category(category):
            if item.image_url:
                return item.image_url
        return None


def _parse_menu(data: Dict[str, Any]) -> List[FoodItem]:
    items: List[FoodItem] = []
    categories = data.get("categories") or {}
    for category, config in categories.items():
        config = config or {}
        for raw in config.get("items") or []:
            payload = dict(raw)
            payload.setdefault("category", category)
            payload.setdefault("image_url", f"{IMAGE_BASE_URL}/{_slugify(payload['name'])}.jpg")
            items.append(FoodItem.model_validate(payload))
    return items


_catalog: Optional[InMemoryCatalog] = None


def get_catalog(menu_path: str | None = None) -> InMemoryCatalog:
    global _catalog
    if _catalog is None:
        _catalog = InMemoryCatalog.from_yaml(menu_path)
    return _catalog
