"""Tests for the widget_list management command."""
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import TestCase

from widgets.registry import registry
from widgets.test_utils import area, make_page, widget


class WidgetListCommandTests(TestCase):
    def _run(self, *args):
        out = StringIO()
        call_command("widget_list", *args, stdout=out)
        return out.getvalue().splitlines()

    def test_lists_every_usage_with_dot_path(self):
        make_page(
            "home",
            body=area(
                widget("video", url="http://a"),
                widget("gallery", body=area(widget("text"), widget("video", url="http://b"))),
            ),
        )
        make_page("about", sidebar=area(widget("video", url="http://c")))

        lines = self._run("video")

        self.assertEqual(
            lines,
            ["home:body.items.0", "home:body.items.1.body.items.1", "about:sidebar.items.0"],
        )

    def test_no_usages_prints_nothing(self):
        make_page("home", body=area(widget("text")))
        self.assertEqual(self._run("video"), [])

    def test_unknown_type_is_an_error(self):
        with self.assertRaises(CommandError):
            self._run("mystery")

    def test_database_failure_is_reported(self):
        with patch.object(registry.areas, "each_widget", side_effect=DatabaseError("db down")):
            with self.assertRaisesMessage(CommandError, "db down"):
                self._run("video")
