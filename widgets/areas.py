from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from django.db import DatabaseError

from core.documents import document_schema, iter_widgets
from core.exceptions import LoadError
from core.models import Document
from core.relations import resolver as default_resolver

if TYPE_CHECKING:
    from .registry import WidgetTypeRegistry

logger = logging.getLogger(__name__)


class AreaManager:
    """Loads the widgets held in areas and walks stored documents for them."""

    def __init__(self, registry: WidgetTypeRegistry, relations=None):
        self.registry = registry
        self.relations = relations or default_resolver

    def load_documents(self, context, docs: list[dict], *, relations: bool = True) -> None:
        """Load a list of records as documents.

        With ``relations`` on, each record's document-type joins are resolved
        first. The post-load step then runs the loaders of every widget found
        in the records' areas.
        """
        if relations:
            self._resolve_document_relations(context, docs)
        self.after(context, docs)

    def after(self, context, containers: list[dict]) -> None:
        batches: dict[str, list[dict]] = {}
        for container in containers:
            for _path, widget in iter_widgets(container, descend_virtual=False, derived=self.derived_keys):
                batches.setdefault(str(widget.get("type")), []).append(widget)

        for type_name, widgets in batches.items():
            manager = self.registry.get(type_name)
            if manager is None:
                logger.warning("Skipping %d widget(s) of unregistered type %r", len(widgets), type_name)
                continue
            manager.load(context, widgets)

    def derived_keys(self, container: dict) -> frozenset:
        """Names of the loader-populated fields of a widget or document record."""
        manager = self.registry.get(container.get("type"))
        if manager is not None:
            return manager.schema.derived_names()
        schema = document_schema(container.get("type"))
        return schema.derived_names() if schema else frozenset()

    def _resolve_document_relations(self, context, docs: list[dict]) -> None:
        by_type: dict[str, list[dict]] = {}
        for doc in docs:
            by_type.setdefault(doc.get("type"), []).append(doc)
        for doc_type, batch in by_type.items():
            schema = document_schema(doc_type)
            if schema is None or not schema.relations():
                continue
            try:
                self.relations.resolve(context, schema, batch)
            except DatabaseError as exc:
                raise LoadError(f"Could not resolve relations for {doc_type} documents: {exc}") from exc

    def each_widget(self, iterator: Callable[[Document, dict, str], None]) -> None:
        """Call ``iterator(doc, widget, dot_path)`` for every widget in every stored document."""
        for doc in Document.objects.order_by("pk").iterator():
            record = doc.as_record()
            for dot_path, widget in iter_widgets(record, derived=self.derived_keys):
                iterator(doc, widget, dot_path)
