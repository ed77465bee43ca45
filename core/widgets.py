from django import forms

from .schemas import Schema


class EasyMDETextarea(forms.Textarea):
    """Textarea widget that upgrades to an EasyMDE Markdown editor."""

    def __init__(self, *args, **kwargs):
        attrs = kwargs.setdefault("attrs", {})
        attrs["data-easymde"] = "true"
        super().__init__(*args, **kwargs)

    @property
    def media(self):
        return forms.Media(
            css={
                "all": (
                    "https://cdn.jsdelivr.net/npm/easymde@2.18.0/dist/easymde.min.css",
                )
            },
            js=(
                "https://cdn.jsdelivr.net/npm/easymde@2.18.0/dist/easymde.min.js",
                "core/js/easymde-init.js",
            ),
        )


class RelationIdsInput(forms.TextInput):
    """Plain input holding relation ids; the browser chooser fills it in."""

    def __init__(self, *args, with_type="", many=False, **kwargs):
        attrs = kwargs.setdefault("attrs", {})
        attrs["data-widget-join"] = with_type
        attrs["data-widget-join-many"] = "true" if many else "false"
        super().__init__(*args, **kwargs)


def _form_field(schema_field) -> forms.Field | None:
    common = {"label": schema_field.label, "required": schema_field.required}
    if schema_field.default is not None:
        common["initial"] = schema_field.default
    field_type = schema_field.type
    if field_type == "string":
        return forms.CharField(max_length=schema_field.max_length, **common)
    if field_type == "text":
        return forms.CharField(widget=EasyMDETextarea(), **common)
    if field_type == "url":
        return forms.CharField(widget=forms.URLInput(), **common)
    if field_type == "boolean":
        return forms.BooleanField(**{**common, "required": False})
    if field_type == "integer":
        return forms.IntegerField(min_value=schema_field.min, max_value=schema_field.max, **common)
    if field_type == "float":
        return forms.FloatField(min_value=schema_field.min, max_value=schema_field.max, **common)
    if field_type == "select":
        return forms.ChoiceField(choices=list(schema_field.choices), **common)
    if field_type == "join":
        return forms.CharField(
            widget=RelationIdsInput(with_type=schema_field.with_type, many=schema_field.many),
            **{**common, "required": False},
        )
    # Areas are edited in place, not in the modal.
    return None


def schema_form(schema: Schema, data=None) -> forms.Form:
    """Build an unbound (or bound) Django form mirroring ``schema`` for the editor modal."""
    fields = {}
    for schema_field in schema:
        form_field = _form_field(schema_field)
        if form_field is None:
            continue
        key = schema_field.ids_field if schema_field.is_relation else schema_field.name
        fields[key] = form_field
    form_class = type("WidgetSchemaForm", (forms.Form,), fields)
    return form_class(data)
