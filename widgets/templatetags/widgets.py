import json
import logging

import markdown as markdown_lib
from django import template
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.html import format_html
from django.utils.safestring import mark_safe

register = template.Library()
logger = logging.getLogger(__name__)


@register.simple_tag(takes_context=True)
def render_widget_area(context, record, area_name: str, **options) -> str:
    """Render the widgets of an already loaded area of ``record``."""
    from core.documents import is_area
    from widgets.context import LoadContext
    from widgets.registry import registry

    area = record.get(area_name) if isinstance(record, dict) else None
    if not is_area(area):
        return ""

    request = context.get("request")
    load_context = LoadContext.for_request(request) if request is not None else LoadContext()
    parts = []
    for item in area["items"]:
        if not isinstance(item, dict):
            continue
        manager = registry.get(item.get("type"))
        if manager is None:
            logger.warning("Skipping widget of unregistered type %r in area %s", item.get("type"), area_name)
            continue
        try:
            html = manager.render(item, options, context=load_context)
        except Exception:
            logger.exception("Widget %s _id=%s failed to render", manager.name, item.get("_id"))
            continue
        parts.append(
            format_html(
                '<div class="widget" data-widget-type="{}" data-widget="{}" data-options="{}">{}</div>',
                manager.name,
                json.dumps(manager.filter_record(item), cls=DjangoJSONEncoder),
                json.dumps(manager.filter_options(options), cls=DjangoJSONEncoder),
                mark_safe(html),
            )
        )
    return format_html(
        '<div class="area" data-area="{}">{}</div>', area_name, mark_safe("".join(parts))
    )


@register.simple_tag
def widget_helper(manager, helper: str, *args):
    """Call one of the helpers a widget type exposes to its templates."""
    if helper not in getattr(manager, "template_helpers", ()):
        raise template.TemplateSyntaxError(f"{manager!r} does not expose a '{helper}' helper.")
    return getattr(manager, helper)(*args)


@register.filter
def markdown(value) -> str:
    md = markdown_lib.Markdown(extensions=["fenced_code"])
    return mark_safe(md.convert(value or ""))
