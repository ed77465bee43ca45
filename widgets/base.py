from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from django.conf import settings
from django.db import DatabaseError
from django.template.loader import render_to_string
from django.urls import reverse
from django.utils.text import camel_case_to_spaces

from core.exceptions import ConfigurationError, LoadError, ValidationError
from core.push import WHEN_ALWAYS, WHEN_USER
from core.relations import resolver as default_resolver
from core.schemas import Schema, compose, launder_id

from .filters import clone_permanent

if TYPE_CHECKING:
    from core.models import Document

    from .context import LoadContext
    from .registry import WidgetTypeRegistry

logger = logging.getLogger(__name__)

ASSET_TIERS = (("always", WHEN_ALWAYS), ("user", WHEN_USER), ("editor", WHEN_USER))


def default_name(cls) -> str:
    base = cls.__name__
    for suffix in ("Widgets", "Widget"):
        if base.endswith(suffix) and base != suffix:
            base = base[: -len(suffix)]
            break
    return camel_case_to_spaces(base).replace(" ", "_")


class WidgetType:
    """Base class for every kind of widget editors can place in an area.

    Subclasses usually declare nothing more than a ``label``, some
    ``add_fields`` and a template. Any class attribute can be overridden per
    project through ``settings.WIDGET_OPTIONS[name]`` or keyword arguments.

    Lifecycle, in the order the area system drives it:

    * ``sanitize`` turns editor input into a clean record.
    * ``load`` resolves joins for a batch, then loads nested areas of
      virtual (unsaved) widgets.
    * ``render`` produces markup for one record.
    * ``on_page_response`` stages browser assets and the browser singleton.
    """

    name: str = ""
    label: str = ""
    template_name: str = ""
    scene: Optional[str] = None
    contextual_only: bool = False
    template_helpers: tuple = ()
    browser: dict = {}
    add_fields: list = []
    remove_fields: list = []
    arrange_fields: list = []

    def __init__(self, *, relations=None, **options):
        name = options.pop("name", None) or self.name or default_name(type(self))
        options = {**getattr(settings, "WIDGET_OPTIONS", {}).get(name, {}), **options}
        unknown = set(options) - {
            "label",
            "template_name",
            "scene",
            "contextual_only",
            "browser",
            "add_fields",
            "remove_fields",
            "arrange_fields",
        }
        if unknown:
            raise ConfigurationError(f"Unknown options for widget type '{name}': {', '.join(sorted(unknown))}.")

        self.name = name
        self.label = options.get("label", self.label)
        self.template_name = options.get("template_name") or self.template_name or f"widgets/{name}_widget.html"
        self.scene = options.get("scene", self.scene)
        self.contextual_only = bool(options.get("contextual_only", self.contextual_only))
        self.browser = dict(options.get("browser", self.browser) or {})
        self.schema: Schema = compose(
            {
                "add_fields": options.get("add_fields", self.add_fields),
                "remove_fields": options.get("remove_fields", self.remove_fields),
                "arrange_fields": options.get("arrange_fields", self.arrange_fields),
            }
        )
        self.relations = relations or default_resolver
        self.registry: Optional[WidgetTypeRegistry] = None

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"

    def bind(self, registry: WidgetTypeRegistry) -> None:
        if self.registry is not None and self.registry is not registry:
            raise ConfigurationError(f"Widget type '{self.name}' is already registered elsewhere.")
        self.registry = registry

    @property
    def areas(self):
        if self.registry is None:
            raise ConfigurationError(f"Widget type '{self.name}' has not been registered.")
        return self.registry.areas

    # Editing

    def sanitize(self, context: LoadContext, data: dict) -> dict:
        """Return a new, trusted record built from untrusted editor ``data``.

        Every schema field is converted; if any of them fails, the whole
        record is rejected with a ValidationError listing all failures.
        """
        output = {"_id": launder_id(data.get("_id"))}
        errors = self.schema.convert(context, data, output)
        if errors:
            raise ValidationError(errors)
        output["type"] = self.name
        return output

    # Loading

    def load(self, context: LoadContext, records: list[dict]) -> None:
        # Joins and other batch work for this type. A whole list of widgets
        # is handled in one call so lookups can be combined.
        if self.scene:
            context.escalate(self.scene)
        if not records:
            return

        try:
            self.relations.resolve(context, self.schema, records)
        except DatabaseError as exc:
            raise LoadError(f"Could not resolve relations for {self.name} widgets: {exc}") from exc

        # Widgets being edited or previewed were never part of a loaded
        # document, so their nested areas have not been loaded yet. Run the
        # document post-load step over them, without redoing the joins.
        virtual = [record for record in records if record.get("_virtual")]
        if virtual:
            logger.debug("Loading nested areas of %d virtual %s widget(s)", len(virtual), self.name)
            self.areas.load_documents(context, virtual, relations=False)

    # Rendering

    def render(self, record: dict, options: Optional[dict] = None, context: Optional[LoadContext] = None) -> str:
        request = context.request if context is not None else None
        return render_to_string(
            self.template_name,
            {"widget": record, "options": options or {}, "manager": self},
            request=request,
        )

    def filter_record(self, record: dict) -> dict:
        return clone_permanent(record, self.registry)

    def filter_options(self, options: dict) -> dict:
        return clone_permanent(options or {})

    # Browser assets

    def declare_assets(self) -> None:
        for tier, when in ASSET_TIERS:
            self.registry.assets.add(self.name, tier, when=when)

    def media_for(self, context: LoadContext):
        return self.registry.assets.media(self.name, elevated=context.is_elevated)

    @property
    def base_action(self) -> str:
        return reverse("widgets:base", kwargs={"name": self.name})

    def get_singleton_options(self, context: LoadContext) -> dict:
        """Options for the browser-side singleton of this type.

        The ``browser`` option takes precedence over the defaults. Subclasses
        may vary the result by ``context`` (for example by permissions).
        """
        return {
            "name": self.name,
            "label": self.label,
            "baseAction": self.base_action,
            "schema": self.schema.as_list(),
            "contextualOnly": self.contextual_only,
            **self.browser,
        }

    def on_page_response(self, context: LoadContext) -> None:
        context.push.add_media(self.media_for(context))
        context.push.define(self.name)
        context.push.create_singleton(self.name, self.get_singleton_options(context))

    # Maintenance

    def list_usages(self, callback: Callable[[Document, str], None]) -> None:
        def iterator(doc, widget, dot_path):
            if widget.get("type") == self.name:
                callback(doc, dot_path)

        self.areas.each_widget(iterator)
