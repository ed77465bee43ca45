from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, replace
from typing import Any, Iterator, Optional
from urllib.parse import urlsplit

from .exceptions import ConfigurationError, FieldError

FIELD_TYPES = {"string", "text", "url", "boolean", "integer", "float", "select", "join", "area"}
DERIVED_PREFIX = "_"
RESERVED_FIELD_NAMES = frozenset({"_id", "_virtual", "type"})
DEFAULT_GROUP = "default"
BLESSED_SESSION_KEY = "blessed_schemas"
ALLOWED_URL_SCHEMES = ("http", "https", "ftp", "mailto")
TRUTHY = {"true", "1", "on", "yes"}

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class Field:
    name: str
    type: str
    label: str = ""
    required: bool = False
    default: Any = None
    persisted: bool = True
    group: str = DEFAULT_GROUP
    choices: tuple = ()
    min: Optional[float] = None
    max: Optional[float] = None
    max_length: Optional[int] = None
    with_type: Optional[str] = None
    ids_field: Optional[str] = None
    many: bool = False
    widgets: tuple = ()

    @property
    def is_relation(self) -> bool:
        return self.type == "join"

    @property
    def is_area(self) -> bool:
        return self.type == "area"

    @property
    def sanitizable(self) -> bool:
        # Relations and nested areas are populated by the loader, never by editor input.
        return self.persisted and not self.is_area and not self.is_relation

    def as_dict(self) -> dict:
        data = {
            "name": self.name,
            "type": self.type,
            "label": self.label,
            "required": self.required,
            "group": self.group,
        }
        if self.default is not None:
            data["default"] = self.default
        if self.choices:
            data["choices"] = [{"value": value, "label": label} for value, label in self.choices]
        for key in ("min", "max", "max_length", "with_type", "ids_field"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.is_relation:
            data["many"] = self.many
        if self.widgets:
            data["widgets"] = list(self.widgets)
        return data


class Schema:
    """An ordered, validated list of fields plus their display groups."""

    def __init__(self, fields: list[Field], groups: list[dict]):
        self._fields = tuple(fields)
        self._by_name = {f.name: f for f in fields}
        self.groups = groups

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> Field:
        return self._by_name[name]

    def names(self) -> list[str]:
        return [f.name for f in self._fields]

    def relations(self) -> list[Field]:
        return [f for f in self._fields if f.is_relation]

    def areas(self) -> list[Field]:
        return [f for f in self._fields if f.is_area]

    def derived_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self._fields if not f.persisted)

    def as_list(self) -> list[dict]:
        return [f.as_dict() for f in self._fields]

    def signature(self) -> str:
        payload = json.dumps(self.as_list(), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    def convert(self, context, data: dict, output: dict) -> list[FieldError]:
        """Convert every sanitizable field of ``data`` into ``output``.

        Fields that fail are left out of ``output`` and reported; the caller
        decides whether the record as a whole is rejected.
        """
        errors: list[FieldError] = []
        for f in self._fields:
            if f.is_relation:
                try:
                    output[f.ids_field] = _convert_ids(f, data.get(f.ids_field))
                except FieldInvalid as exc:
                    errors.append(FieldError(f.ids_field, exc.code, exc.message))
                continue
            if not f.sanitizable:
                continue
            try:
                output[f.name] = CONVERTERS[f.type](f, data.get(f.name))
            except FieldInvalid as exc:
                errors.append(FieldError(f.name, exc.code, exc.message))
        return errors


class FieldInvalid(Exception):
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def compose(config: dict) -> Schema:
    """Build a schema from ``add_fields``, ``remove_fields`` and ``arrange_fields``."""
    fields: dict[str, Field] = {}
    for raw in config.get("add_fields") or []:
        f = _build_field(raw)
        if f.name in fields:
            raise ConfigurationError(f"Field '{f.name}' is defined more than once.")
        fields[f.name] = f

    for name in config.get("remove_fields") or []:
        if name not in fields:
            raise ConfigurationError(f"Cannot remove field '{name}': no such field.")
        del fields[name]

    ids_fields = {f.ids_field for f in fields.values() if f.is_relation}
    clashes = ids_fields & set(fields)
    if clashes:
        raise ConfigurationError(f"Relation id fields clash with declared fields: {', '.join(sorted(clashes))}.")

    ordered: list[Field] = []
    groups: list[dict] = []
    placed: set[str] = set()
    for group in config.get("arrange_fields") or []:
        group_name = group.get("name")
        if not group_name:
            raise ConfigurationError("Every arranged group needs a 'name'.")
        names = list(group.get("fields") or [])
        for name in names:
            if name not in fields:
                raise ConfigurationError(f"Group '{group_name}' arranges unknown field '{name}'.")
            if name in placed:
                raise ConfigurationError(f"Field '{name}' is arranged in more than one group.")
            placed.add(name)
            ordered.append(_with_group(fields[name], group_name))
        groups.append({"name": group_name, "label": group.get("label") or group_name.title(), "fields": names})

    rest = [name for name in fields if name not in placed]
    if rest:
        ordered.extend(fields[name] for name in rest)
        if groups:
            groups.append({"name": DEFAULT_GROUP, "label": "Other", "fields": rest})
    return Schema(ordered, groups)


def _with_group(f: Field, group: str) -> Field:
    return replace(f, group=group)


def _build_field(raw: dict) -> Field:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Field definitions must be mappings, got {raw!r}.")
    name = raw.get("name")
    if not name or not isinstance(name, str):
        raise ConfigurationError(f"Field definition is missing a name: {raw!r}.")
    if name in RESERVED_FIELD_NAMES:
        raise ConfigurationError(f"Field name '{name}' is reserved.")
    field_type = raw.get("type")
    if field_type not in FIELD_TYPES:
        raise ConfigurationError(f"Field '{name}' has unknown type '{field_type}'.")

    options = {
        "label": raw.get("label") or name.lstrip(DERIVED_PREFIX).replace("_", " ").capitalize(),
        "required": bool(raw.get("required", False)),
        "default": raw.get("default"),
        "persisted": bool(raw.get("persisted", True)),
        "min": raw.get("min"),
        "max": raw.get("max"),
        "max_length": raw.get("max_length"),
    }
    if field_type == "select":
        choices = tuple(_normalize_choice(choice) for choice in raw.get("choices") or [])
        if not choices:
            raise ConfigurationError(f"Select field '{name}' needs choices.")
        options["choices"] = choices
    if field_type == "join":
        if not raw.get("with_type"):
            raise ConfigurationError(f"Join field '{name}' needs 'with_type'.")
        many = bool(raw.get("many", False))
        base = name.lstrip(DERIVED_PREFIX)
        options.update(
            persisted=False,
            with_type=raw["with_type"],
            many=many,
            ids_field=raw.get("ids_field") or (f"{base}_ids" if many else f"{base}_id"),
        )
        if options["ids_field"] in RESERVED_FIELD_NAMES:
            raise ConfigurationError(f"Join field '{name}' cannot store its ids in '{options['ids_field']}'.")
    if field_type == "area":
        options["widgets"] = tuple(raw.get("widgets") or ())
    return Field(name=name, type=field_type, **options)


def _normalize_choice(choice) -> tuple:
    if isinstance(choice, dict):
        return (choice["value"], choice.get("label") or str(choice["value"]))
    if isinstance(choice, (list, tuple)):
        return (choice[0], choice[1])
    return (choice, str(choice))


def launder_id(value) -> Optional[str]:
    if isinstance(value, str) and _ID_RE.match(value):
        return value
    return None


def _require(f: Field, value):
    if f.required and value in ("", None):
        raise FieldInvalid("required", f"{f.label} is required.")
    return value


def _as_text(value) -> str:
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    return str(value)


def _convert_string(f: Field, value) -> str:
    text = _as_text(value).strip()
    if not text and f.default is not None:
        text = str(f.default)
    if f.max_length is not None and len(text) > f.max_length:
        raise FieldInvalid("max_length", f"{f.label} must be at most {f.max_length} characters.")
    return _require(f, text)


def _convert_text(f: Field, value) -> str:
    text = _as_text(value).rstrip()
    if not text and f.default is not None:
        text = str(f.default)
    return _require(f, text)


def _convert_url(f: Field, value) -> str:
    url = _as_text(value).strip()
    if not url:
        return _require(f, "")
    if url.startswith("/") and not url.startswith("//"):
        return url
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError as exc:
        raise FieldInvalid("invalid", f"{f.label} is not a valid URL.") from exc
    if not scheme:
        url = f"http://{url}"
    elif scheme not in ALLOWED_URL_SCHEMES:
        raise FieldInvalid("invalid", f"{f.label} must be an http, https, ftp or mailto URL.")
    return url


def _convert_boolean(f: Field, value) -> bool:
    if value is None or value == "":
        return bool(f.default)
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def _convert_number(f: Field, value, cast):
    if value is None or (isinstance(value, str) and not value.strip()):
        return _require(f, f.default)
    if isinstance(value, bool):
        raise FieldInvalid("invalid", f"{f.label} must be a number.")
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise FieldInvalid("invalid", f"{f.label} must be a number.") from exc
    if cast is int and isinstance(value, float) and number != value:
        raise FieldInvalid("invalid", f"{f.label} must be a whole number.")
    if f.min is not None and number < f.min:
        raise FieldInvalid("min", f"{f.label} must be at least {f.min}.")
    if f.max is not None and number > f.max:
        raise FieldInvalid("max", f"{f.label} must be at most {f.max}.")
    return number


def _convert_integer(f: Field, value):
    return _convert_number(f, value, int)


def _convert_float(f: Field, value):
    return _convert_number(f, value, float)


def _convert_select(f: Field, value):
    values = [choice[0] for choice in f.choices]
    if value in values:
        return value
    if value in ("", None):
        default = f.default if f.default is not None else ("" if f.required else values[0])
        return _require(f, default)
    raise FieldInvalid("invalid", f"{f.label} must be one of: {', '.join(map(str, values))}.")


def _convert_ids(f: Field, value):
    if f.many:
        if value in ("", None):
            return []
        if not isinstance(value, (list, tuple)):
            raise FieldInvalid("invalid", f"{f.label} must be a list of identifiers.")
        ids = [launder_id(item) for item in value]
        return [doc_id for doc_id in ids if doc_id]
    return launder_id(value)


CONVERTERS = {
    "string": _convert_string,
    "text": _convert_text,
    "url": _convert_url,
    "boolean": _convert_boolean,
    "integer": _convert_integer,
    "float": _convert_float,
    "select": _convert_select,
}


def bless(request, schema: Schema) -> None:
    """Authorize the session to submit data for ``schema``."""
    session = getattr(request, "session", None)
    if session is None:
        return
    blessed = list(session.get(BLESSED_SESSION_KEY, []))
    signature = schema.signature()
    if signature not in blessed:
        blessed.append(signature)
        session[BLESSED_SESSION_KEY] = blessed


def is_blessed(request, schema: Schema) -> bool:
    session = getattr(request, "session", None)
    if session is None:
        return False
    return schema.signature() in session.get(BLESSED_SESSION_KEY, [])
