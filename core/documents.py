from __future__ import annotations

from typing import Callable, Iterable, Iterator, Optional

from django.conf import settings

from .schemas import DERIVED_PREFIX, Schema, compose

AREA_TYPE = "area"


def document_schema(doc_type) -> Optional[Schema]:
    """Schema for a stored document type, from ``settings.DOCUMENT_TYPES``."""
    if not isinstance(doc_type, str):
        return None
    config = getattr(settings, "DOCUMENT_TYPES", {}).get(doc_type)
    if config is None:
        return None
    return compose(config)


def is_area(value) -> bool:
    return isinstance(value, dict) and value.get("type") == AREA_TYPE and isinstance(value.get("items"), list)


def _join(path: str, key) -> str:
    return f"{path}.{key}" if path else str(key)


def iter_widgets(
    value,
    path: str = "",
    *,
    descend_virtual: bool = True,
    derived: Optional[Callable[[dict], Iterable[str]]] = None,
) -> Iterator[tuple[str, dict]]:
    """Yield ``(dot_path, widget)`` for every widget reachable through areas.

    Keys carrying the derived marker, and any keys ``derived(container)``
    names, are not walked, so loaded relations are never mistaken for
    content. With ``descend_virtual`` off, the contents of virtual widgets
    are not visited.
    """
    if is_area(value):
        for index, item in enumerate(value["items"]):
            if not isinstance(item, dict):
                continue
            item_path = _join(_join(path, "items"), index)
            yield item_path, item
            if descend_virtual or not item.get("_virtual"):
                yield from _iter_children(item, item_path, descend_virtual, derived)
    elif isinstance(value, (dict, list)):
        yield from _iter_children(value, path, descend_virtual, derived)


def _iter_children(value, path: str, descend_virtual: bool, derived) -> Iterator[tuple[str, dict]]:
    if isinstance(value, dict):
        skip = set(derived(value)) if derived else set()
        for key, child in value.items():
            if not isinstance(key, str) or key.startswith(DERIVED_PREFIX) or key in skip:
                continue
            yield from iter_widgets(child, _join(path, key), descend_virtual=descend_virtual, derived=derived)
    elif isinstance(value, list):
        for index, child in enumerate(value):
            yield from iter_widgets(child, _join(path, index), descend_virtual=descend_virtual, derived=derived)


def area_names(record: dict) -> list[str]:
    """Top-level keys of ``record`` that hold areas, in order."""
    return [key for key, value in record.items() if not key.startswith(DERIVED_PREFIX) and is_area(value)]
