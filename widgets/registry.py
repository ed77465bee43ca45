from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Iterator, Optional

from core.exceptions import ConfigurationError
from core.push import AssetRegistry

from .areas import AreaManager

if TYPE_CHECKING:
    from .base import WidgetType

logger = logging.getLogger(__name__)

RESERVED_NAMES = {"area"}
_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


class WidgetTypeRegistry:
    def __init__(self):
        self._types: dict[str, WidgetType] = {}
        self._frozen = False
        self.assets = AssetRegistry()
        self.areas = AreaManager(self)

    def register(self, widget_type: WidgetType) -> WidgetType:
        if self._frozen:
            raise ConfigurationError(
                f"Cannot register widget type '{widget_type.name}' after startup has finished."
            )
        if not widget_type.label:
            raise ConfigurationError(
                f"Widget type {type(widget_type).__name__} must specify a label."
            )
        name = widget_type.name
        if not name or not _NAME_RE.match(name) or name in RESERVED_NAMES:
            raise ConfigurationError(f"'{name}' is not a valid widget type name.")
        if name in self._types:
            raise ConfigurationError(f"A widget type named '{name}' is already registered.")

        widget_type.bind(self)
        self._types[name] = widget_type
        widget_type.declare_assets()
        logger.debug("Registered widget type %s (%s)", name, widget_type.label)
        return widget_type

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name) -> Optional[WidgetType]:
        if not isinstance(name, str):
            return None
        return self._types.get(name)

    def lookup(self, name: str) -> WidgetType:
        widget_type = self.get(name)
        if widget_type is None:
            raise KeyError(f"No widget type named '{name}' is registered.")
        return widget_type

    def all(self) -> list[WidgetType]:
        return list(self._types.values())

    def __iter__(self) -> Iterator[WidgetType]:
        return iter(self.all())

    def __contains__(self, name) -> bool:
        return self.get(name) is not None

    def choices(self) -> list[tuple[str, str]]:
        return [(widget_type.name, widget_type.label) for widget_type in self._types.values()]


registry = WidgetTypeRegistry()


def load_widget_types(target: WidgetTypeRegistry) -> list[WidgetType]:
    """Instantiate and register every class listed in ``settings.WIDGET_TYPES``."""
    from django.conf import settings
    from django.utils.module_loading import import_string

    loaded = []
    for path in getattr(settings, "WIDGET_TYPES", []):
        try:
            cls = import_string(path)
        except ImportError as exc:
            raise ConfigurationError(f"Could not import widget type '{path}': {exc}") from exc
        loaded.append(target.register(cls()))
    return loaded
