"""Tests for WidgetType.load and AreaManager document loading."""
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, override_settings

from core.exceptions import LoadError
from core.relations import RelationResolver
from widgets.base import WidgetType
from widgets.context import LoadContext, SCENE_USER
from widgets.test_utils import (
    ClipWidget,
    ColumnWidget,
    area,
    make_image,
    make_page,
    make_registry,
    widget,
)
from widgets.widget_types import GalleryWidget, TextWidget


class CountingResolver(RelationResolver):
    def __init__(self):
        self.calls = []

    def resolve(self, context, schema, records):
        self.calls.append([record.get("type") for record in records])
        return super().resolve(context, schema, records)


class FormWidget(WidgetType):
    label = "Form"
    scene = SCENE_USER


class RelationStageTests(TestCase):
    def setUp(self):
        self.registry = make_registry(GalleryWidget, ClipWidget, TextWidget)
        self.gallery = self.registry.lookup("gallery")
        self.context = LoadContext()
        self.sunset = make_image("sunset")
        self.beach = make_image("beach")

    def test_batch_is_resolved_with_one_query(self):
        records = [
            widget("gallery", image_ids=[self.sunset.guid]),
            widget("gallery", image_ids=[self.beach.guid, self.sunset.guid]),
            widget("gallery", image_ids=[self.beach.guid]),
        ]
        with self.assertNumQueries(1):
            self.gallery.load(self.context, records)
        self.assertEqual([i["slug"] for i in records[1]["images"]], ["beach", "sunset"])
        self.assertEqual([i["slug"] for i in records[2]["images"]], ["beach"])

    def test_resolver_called_once_per_batch(self):
        resolver = CountingResolver()
        registry = make_registry(GalleryWidget, relations=resolver)
        records = [widget("gallery", image_ids=[self.sunset.guid]) for _ in range(5)]
        registry.lookup("gallery").load(self.context, records)
        self.assertEqual(len(resolver.calls), 1)

    def test_persisted_records_do_not_load_nested_areas(self):
        records = [widget("gallery", body=area(widget("video", url="http://x")))]
        with patch.object(self.registry.areas, "load_documents") as load_documents:
            self.gallery.load(self.context, records)
        load_documents.assert_not_called()

    def test_empty_batch_is_a_no_op(self):
        with self.assertNumQueries(0):
            self.gallery.load(self.context, [])

    def test_database_failure_becomes_load_error(self):
        records = [widget("gallery", image_ids=[self.sunset.guid])]
        with patch.object(self.gallery.relations, "resolve", side_effect=DatabaseError("db down")):
            with self.assertRaises(LoadError):
                self.gallery.load(self.context, records)


class SceneTests(TestCase):
    def test_scene_requirement_escalates_context(self):
        registry = make_registry(FormWidget)
        context = LoadContext()
        self.assertFalse(context.is_elevated)
        registry.lookup("form").load(context, [])
        self.assertEqual(context.scene, SCENE_USER)
        self.assertTrue(context.is_elevated)

    def test_types_without_scene_leave_context_alone(self):
        registry = make_registry(TextWidget)
        context = LoadContext()
        registry.lookup("text").load(context, [widget("text")])
        self.assertIsNone(context.scene)


class VirtualLoadTests(TestCase):
    def setUp(self):
        self.resolver = CountingResolver()
        self.registry = make_registry(GalleryWidget, ClipWidget, ColumnWidget, relations=self.resolver)
        self.context = LoadContext()
        self.poster = make_image("poster")
        self.cover = make_image("cover")

    def test_nested_virtual_widgets_are_loaded(self):
        video = widget("video", url="http://x", poster_id=self.poster.guid, _virtual=True)
        gallery = widget("gallery", image_ids=[self.cover.guid], body=area(video), _virtual=True)

        self.registry.lookup("gallery").load(self.context, [gallery])

        self.assertEqual([i["slug"] for i in gallery["images"]], ["cover"])
        nested = gallery["body"]["items"]
        self.assertEqual(len(nested), 1)
        self.assertEqual(nested[0]["poster"]["slug"], "poster")

    def test_relations_run_before_nested_areas_without_repeating(self):
        order = []
        gallery_type = self.registry.lookup("gallery")
        real_resolve = self.resolver.resolve

        def resolve(context, schema, records):
            order.append(("relations", records[0]["type"]))
            return real_resolve(context, schema, records)

        video = widget("video", url="http://x", _virtual=True)
        gallery = widget("gallery", body=area(video), _virtual=True)
        real_load_documents = self.registry.areas.load_documents

        def load_documents(context, docs, *, relations=True):
            order.append(("nested", relations))
            return real_load_documents(context, docs, relations=relations)

        with patch.object(self.resolver, "resolve", side_effect=resolve), patch.object(
            self.registry.areas, "load_documents", side_effect=load_documents
        ):
            gallery_type.load(self.context, [gallery])

        self.assertEqual(
            order,
            [("relations", "gallery"), ("nested", False), ("relations", "video"), ("nested", False)],
        )

    def test_deep_nesting_terminates_and_loads_every_level(self):
        page = make_page("about")
        innermost = widget("column", related_ids=[page.guid], _virtual=True, body=area())
        current = innermost
        for _ in range(20):
            current = widget("column", related_ids=[page.guid], _virtual=True, body=area(current))

        self.registry.lookup("column").load(self.context, [current])

        depth = 0
        node = current
        while node is not None:
            self.assertEqual([r["slug"] for r in node["related"]], ["about"])
            items = node["body"]["items"]
            node = items[0] if items else None
            depth += 1
        self.assertEqual(depth, 21)
        self.assertEqual(len(self.resolver.calls), 21)

    def test_non_virtual_content_inside_virtual_widget_is_loaded_in_same_pass(self):
        leaf = widget("video", url="http://x", poster_id=self.poster.guid)
        middle = widget("column", body=area(leaf))
        outer = widget("column", body=area(middle), _virtual=True)

        self.registry.lookup("column").load(self.context, [outer])

        self.assertEqual(middle["related"], [])
        self.assertEqual(leaf["poster"]["slug"], "poster")
        self.assertEqual(
            self.resolver.calls, [["column"], ["column"], ["video"]]
        )

    def test_nested_failure_aborts_the_batch(self):
        video = widget("video", url="http://x", _virtual=True)
        gallery = widget("gallery", body=area(video), _virtual=True)
        with patch.object(self.registry.lookup("video"), "load", side_effect=LoadError("nested")):
            with self.assertRaises(LoadError):
                self.registry.lookup("gallery").load(self.context, [gallery])

    def test_unregistered_nested_types_are_skipped(self):
        gallery = widget("gallery", body=area(widget("mystery")), _virtual=True)
        with self.assertLogs("widgets.areas", "WARNING") as logs:
            self.registry.lookup("gallery").load(self.context, [gallery])
        self.assertIn("mystery", logs.output[0])


class DocumentLoadTests(TestCase):
    def setUp(self):
        self.registry = make_registry(GalleryWidget, ClipWidget, ColumnWidget)
        self.context = LoadContext()
        self.poster = make_image("poster")

    def test_every_widget_in_a_document_is_loaded(self):
        leaf = widget("video", url="http://x", poster_id=self.poster.guid)
        doc = make_page("home", body=area(widget("column", body=area(leaf))))
        record = doc.as_record()

        self.registry.areas.load_documents(self.context, [record])

        loaded_leaf = record["body"]["items"][0]["body"]["items"][0]
        self.assertEqual(loaded_leaf["poster"]["slug"], "poster")

    def test_widgets_of_one_type_share_a_batch(self):
        doc_one = make_page("one", body=area(widget("video", url="http://a"), widget("video", url="http://b")))
        doc_two = make_page("two", body=area(widget("video", url="http://c")))
        records = [doc_one.as_record(), doc_two.as_record()]
        video = self.registry.lookup("video")
        with patch.object(video, "load") as load:
            self.registry.areas.load_documents(self.context, records)
        load.assert_called_once()
        self.assertEqual([w["url"] for w in load.call_args[0][1]], ["http://a", "http://b", "http://c"])

    @override_settings(
        DOCUMENT_TYPES={"page": {"add_fields": [{"name": "hero", "type": "join", "with_type": "image"}]}}
    )
    def test_document_relations_resolved_unless_disabled(self):
        record = make_page("home", hero_id=self.poster.guid).as_record()
        self.registry.areas.load_documents(self.context, [record])
        self.assertEqual(record["hero"]["slug"], "poster")

        other = make_page("other", hero_id=self.poster.guid).as_record()
        self.registry.areas.load_documents(self.context, [other], relations=False)
        self.assertNotIn("hero", other)

    @override_settings(
        DOCUMENT_TYPES={"page": {"add_fields": [{"name": "related", "type": "join", "with_type": "page", "many": True}]}}
    )
    def test_loaded_relations_are_not_walked_for_widgets(self):
        target = make_page("target", body=area(widget("video", url="http://x", poster_id=self.poster.guid)))
        record = make_page("home", related_ids=[target.guid]).as_record()
        video = self.registry.lookup("video")
        with patch.object(video, "load") as load:
            self.registry.areas.load_documents(self.context, [record])
        load.assert_not_called()
        self.assertEqual(record["related"][0]["slug"], "target")
