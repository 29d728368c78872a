"""
Staged edits for one entity.

An EntityDraft is a private working copy: nested lists (variants, images,
banners, testimonials) can be appended to, pruned and reordered without any
remote call, and the whole draft is written with a single create or update on
submit. The list helpers are also used by routes that rewrite a stored array.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from errors import RecordNotFound, RuleViolation

logger = logging.getLogger(__name__)


def _check_index(items: List[Any], index: int) -> None:
    if not 0 <= index < len(items):
        raise RuleViolation(f"No item at position {index}")


def append_item(items: List[Any], item: Any) -> List[Any]:
    return list(items) + [item]


def remove_item(items: List[Any], index: int) -> List[Any]:
    _check_index(items, index)
    return [x for i, x in enumerate(items) if i != index]


def move_item(items: List[Any], index: int, offset: int) -> List[Any]:
    """Swap with the neighbour ``offset`` away; a no-op at either end."""
    _check_index(items, index)
    target = index + offset
    updated = list(items)
    if 0 <= target < len(updated):
        updated[index], updated[target] = updated[target], updated[index]
    return updated


def move_up(items: List[Any], index: int) -> List[Any]:
    return move_item(items, index, -1)


def move_down(items: List[Any], index: int) -> List[Any]:
    return move_item(items, index, 1)


class EntityDraft:
    def __init__(self, data: Optional[Dict[str, Any]] = None, adding: bool = True):
        self.data: Dict[str, Any] = copy.deepcopy(data or {})
        self.adding = adding

    @property
    def id(self) -> Optional[str]:
        return self.data.get("id")

    def get(self, path: str, default: Any = None) -> Any:
        current: Any = self.data
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def set(self, path: str, value: Any) -> None:
        parts = path.split(".")
        current = self.data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def _list(self, path: str) -> List[Any]:
        value = self.get(path)
        if value is None:
            return []
        if not isinstance(value, list):
            raise RuleViolation(f"{path} is not a list")
        return value

    def append(self, path: str, item: Any) -> None:
        self.set(path, append_item(self._list(path), item))

    def remove(self, path: str, index: int) -> None:
        self.set(path, remove_item(self._list(path), index))

    def move_up(self, path: str, index: int) -> None:
        self.set(path, move_up(self._list(path), index))

    def move_down(self, path: str, index: int) -> None:
        self.set(path, move_down(self._list(path), index))

    def set_item(self, path: str, index: int, **fields: Any) -> None:
        items = self._list(path)
        _check_index(items, index)
        updated = list(items)
        updated[index] = {**updated[index], **fields}
        self.set(path, updated)

    def attach_image(self, path: str, url: str) -> None:
        """Append to an image list, or replace a single image field."""
        if isinstance(self.get(path), list):
            self.append(path, url)
        else:
            self.set(path, url)

    def submit(self, service) -> str:
        """One create when adding, otherwise one update of the drafted fields."""
        if self.adding:
            new_id = service.create(self.data)
            self.data["id"] = new_id
            self.adding = False
            return new_id
        if not self.id:
            raise RuleViolation("Invalid document reference.")
        fields = {k: v for k, v in self.data.items() if k != "id"}
        if not service.update(self.id, fields):
            raise RecordNotFound(f"{service.label} does not exist. Cannot update.")
        return self.id
