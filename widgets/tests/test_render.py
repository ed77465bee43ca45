"""Tests for WidgetType.render and the sanitize, load, render round trip."""
from django.template import Context, Template, TemplateSyntaxError
from django.test import SimpleTestCase, TestCase

from widgets.context import LoadContext
from widgets.test_utils import make_image, make_registry, widget
from widgets.widget_types import GalleryWidget, TextWidget, VideoWidget


class RenderTests(SimpleTestCase):
    def setUp(self):
        self.registry = make_registry(TextWidget, VideoWidget)

    def test_text_widget_renders_markdown(self):
        html = self.registry.lookup("text").render(widget("text", title="Hi", content="**bold**"))
        self.assertIn("<h2>Hi</h2>", html)
        self.assertIn("<strong>bold</strong>", html)

    def test_video_widget_uses_type_helper(self):
        html = self.registry.lookup("video").render(widget("video", url="https://youtu.be/abc123"))
        self.assertIn('src="https://www.youtube.com/embed/abc123"', html)
        self.assertIn('title="Video"', html)

    def test_render_does_not_mutate_record(self):
        record = widget("video", url="https://vimeo.com/42")
        before = dict(record)
        self.registry.lookup("video").render(record, {"autoplay": True})
        self.assertEqual(record, before)

    def test_embed_url_passthrough(self):
        video = self.registry.lookup("video")
        self.assertEqual(video.embed_url({"url": "https://vimeo.com/42"}), "https://player.vimeo.com/video/42")
        self.assertEqual(video.embed_url({"url": "https://example.com/v.mp4"}), "https://example.com/v.mp4")

    def test_unexposed_helpers_are_refused(self):
        template = Template('{% load widgets %}{% widget_helper manager "sanitize" widget %}')
        with self.assertRaises(TemplateSyntaxError):
            template.render(Context({"manager": self.registry.lookup("video"), "widget": {}}))


class RoundTripTests(TestCase):
    def setUp(self):
        self.registry = make_registry(TextWidget, VideoWidget, GalleryWidget)
        self.context = LoadContext()

    def test_sanitize_load_render(self):
        image = make_image("sunset")
        gallery = self.registry.lookup("gallery")
        record = gallery.sanitize(self.context, {"title": "Trip", "image_ids": [image.guid], "columns": "4"})
        gallery.load(self.context, [record])
        html = gallery.render(record, {}, context=self.context)
        self.assertIn("widget-gallery--4", html)
        self.assertIn('src="/media/sunset.jpg"', html)

    def test_every_type_round_trips_minimal_input(self):
        inputs = {"text": {}, "video": {"url": "example.com/clip"}, "gallery": {}}
        for name, data in inputs.items():
            manager = self.registry.lookup(name)
            record = manager.sanitize(self.context, data)
            manager.load(self.context, [record])
            self.assertIsInstance(manager.render(record), str)
