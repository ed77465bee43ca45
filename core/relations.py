from __future__ import annotations

import logging

from .models import Document
from .schemas import Field, Schema

logger = logging.getLogger(__name__)


class RelationResolver:
    """Resolve a schema's join fields for a whole batch of records at once.

    Each join field costs one query no matter how many records are in the
    batch. Referenced documents that no longer exist are left out.
    """

    def resolve(self, context, schema: Schema, records: list[dict]) -> None:
        for field in schema.relations():
            self._resolve_field(context, field, records)

    def _resolve_field(self, context, field: Field, records: list[dict]) -> None:
        wanted: list[str] = []
        for record in records:
            for doc_id in _ids_of(record, field):
                if doc_id not in wanted:
                    wanted.append(doc_id)

        found: dict[str, dict] = {}
        if wanted:
            queryset = Document.objects.filter(doc_type=field.with_type, guid__in=wanted)
            found = {doc.guid: doc.as_record() for doc in queryset}
            missing = len(wanted) - len(found)
            if missing:
                logger.debug("%s: %d referenced %s document(s) not found", field.name, missing, field.with_type)

        for record in records:
            related = [found[doc_id] for doc_id in _ids_of(record, field) if doc_id in found]
            if field.many:
                record[field.name] = related
            else:
                record[field.name] = related[0] if related else None


def _ids_of(record: dict, field: Field) -> list[str]:
    value = record.get(field.ids_field)
    if field.many:
        return [doc_id for doc_id in value or [] if isinstance(doc_id, str)]
    return [value] if isinstance(value, str) and value else []


resolver = RelationResolver()
