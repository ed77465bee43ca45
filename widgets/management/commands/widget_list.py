import logging

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from widgets.registry import registry

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        "List every place a widget type is used, one <slug>:<dot path> per line. "
        "Useful for testing a change against all the ways a widget has been used."
    )

    def add_arguments(self, parser):
        parser.add_argument("name", help="Widget type name, e.g. 'video'.")

    def handle(self, *args, **options):
        name = options["name"]
        manager = registry.get(name)
        if manager is None:
            raise CommandError(f"No widget type named '{name}' is registered.")

        def report(doc, dot_path):
            self.stdout.write(f"{doc.slug}:{dot_path}")

        try:
            manager.list_usages(report)
        except DatabaseError as exc:
            logger.exception("Listing %s widgets failed", name)
            raise CommandError(f"Could not enumerate documents: {exc}") from exc
