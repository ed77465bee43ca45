import json
import logging

from django.http import Http404, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.template.loader import render_to_string
from django.template.response import TemplateResponse
from django.views.decorators.http import require_GET, require_POST

from core.documents import area_names
from core.exceptions import ValidationError
from core.models import Document
from core.schemas import bless, is_blessed
from core.widgets import schema_form

from .context import LoadContext
from .registry import registry

logger = logging.getLogger(__name__)


def _get_manager(name: str):
    manager = registry.get(name)
    if manager is None:
        raise Http404(f"No widget type named '{name}'.")
    return manager


@require_GET
def document_detail(request, slug):
    doc = get_object_or_404(Document, slug=slug)
    context = LoadContext.for_request(request)
    record = doc.as_record()
    registry.areas.load_documents(context, [record])
    return TemplateResponse(
        request,
        "widgets/document.html",
        {"doc": record, "area_names": area_names(record)},
    )


@require_GET
def widget_options(request, name):
    manager = _get_manager(name)
    context = LoadContext.for_request(request)
    return JsonResponse(manager.get_singleton_options(context))


@require_POST
def widget_modal(request, name):
    manager = _get_manager(name)
    # The editor may only submit data for schemas it was shown.
    bless(request, manager.schema)
    form = schema_form(manager.schema)
    html = render_to_string(
        "widgets/widget_editor.html",
        {
            "label": manager.label,
            "schema": manager.schema.as_list(),
            "groups": manager.schema.groups,
            "form": form,
            "manager": manager,
        },
        request=request,
    )
    return HttpResponse(html)


@require_POST
def widget_sanitize(request, name):
    manager = _get_manager(name)
    if not is_blessed(request, manager.schema):
        return JsonResponse({"error": "forbidden", "error_description": "Open the editor first."}, status=403)

    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JsonResponse({"error": "invalid_request", "error_description": "Body must be JSON."}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({"error": "invalid_request", "error_description": "Body must be a JSON object."}, status=400)

    context = LoadContext.for_request(request)
    try:
        record = manager.sanitize(context, data)
    except ValidationError as exc:
        logger.info("Rejected %s widget: %s", manager.name, exc.summary())
        return JsonResponse({"error": "invalid", "errors": [error.as_dict() for error in exc.errors]}, status=400)
    return JsonResponse({"widget": manager.filter_record(record)})
