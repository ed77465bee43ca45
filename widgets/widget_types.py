from __future__ import annotations

from .base import WidgetType


class TextWidget(WidgetType):
    label = "Text / Markdown Block"
    add_fields = [
        {"name": "title", "type": "string", "label": "Title", "max_length": 200},
        {"name": "content", "type": "text", "label": "Content (Markdown)"},
    ]


class VideoWidget(WidgetType):
    label = "Video"
    template_helpers = ("embed_url",)
    add_fields = [
        {"name": "url", "type": "url", "label": "Video URL", "required": True},
    ]

    def embed_url(self, widget: dict) -> str:
        """Best-effort player URL for the common hosts; anything else is used as-is."""
        url = widget.get("url") or ""
        if "youtube.com/watch?v=" in url:
            return "https://www.youtube.com/embed/" + url.split("watch?v=", 1)[1].split("&", 1)[0]
        if "youtu.be/" in url:
            return "https://www.youtube.com/embed/" + url.split("youtu.be/", 1)[1].split("?", 1)[0]
        if "vimeo.com/" in url and "player.vimeo.com" not in url:
            return "https://player.vimeo.com/video/" + url.rstrip("/").rsplit("/", 1)[1]
        return url


class GalleryWidget(WidgetType):
    label = "Gallery"
    add_fields = [
        {"name": "title", "type": "string", "label": "Title"},
        {"name": "images", "type": "join", "label": "Images", "with_type": "image", "many": True, "ids_field": "image_ids"},
        {
            "name": "columns",
            "type": "select",
            "label": "Columns",
            "choices": [{"value": "2", "label": "Two"}, {"value": "3", "label": "Three"}, {"value": "4", "label": "Four"}],
            "default": "3",
        },
        {"name": "body", "type": "area", "label": "Captions and media"},
    ]
    arrange_fields = [
        {"name": "basics", "label": "Basics", "fields": ["title", "images"]},
        {"name": "layout", "label": "Layout", "fields": ["columns", "body"]},
    ]
