# Overview: Declarative field rules and the validate() pipeline for entity payloads.

"""
Validation pipeline.

A schema is an ordered tuple of Field rules plus cross-field business
rules. validate() runs, in order:

1. per-field rules (presence, type, length, range, enum, pattern, date
   ordering); the first failing rule ends that field's checks
2. uniqueness against the entity table, excluding the record being
   updated (soft-deleted rows still count)
3. nested array items, reported under keys like
   ``additional_contacts.0.phone``
4. business rules, only when every field-level rule passed

Errors accumulate as ``{key: [messages]}``. The result is either the full
normalized payload or a ValidationFailure, never a partial success.
Keys the schema does not know are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import urlparse

from .errors import ValidationFailure
from .extensions import db
from .time_utils import parse_iso_date, today

# kinds
STRING = "string"
EMAIL = "email"
URL = "url"
NUMERIC = "numeric"
INTEGER = "integer"
BOOLEAN = "boolean"
DATE = "date"
ARRAY = "array"

_TEXT_KINDS = (STRING, EMAIL, URL)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INTEGER_RE = re.compile(r"^-?\d+$")

_TRUE_STRINGS = {"1", "true", "on", "yes"}
_FALSE_STRINGS = {"0", "false", "off", "no"}

DEFAULT_MESSAGES = {
    "required": "The {label} field is required.",
    STRING: "The {label} must be a string.",
    EMAIL: "The {label} must be a valid email address.",
    URL: "The {label} format is invalid.",
    NUMERIC: "The {label} must be a number.",
    INTEGER: "The {label} must be an integer.",
    BOOLEAN: "The {label} field must be true or false.",
    DATE: "The {label} is not a valid date.",
    ARRAY: "The {label} must be an array.",
    "object": "The {label} must be an object.",
    "max_length": "The {label} may not be greater than {max} characters.",
    "min": "The {label} must be at least {min}.",
    "max": "The {label} may not be greater than {max}.",
    "in": "The selected {label} is invalid.",
    "regex": "The {label} format is invalid.",
    "after_or_equal": "The {label} must be a date after or equal to {other}.",
    "after": "The {label} must be a date after {other}.",
    "before_or_equal": "The {label} must be a date before or equal to {other}.",
    "unique": "The {label} has already been taken.",
}

BusinessRule = Callable[[dict], Iterable[tuple[str, str]]]


@dataclass
class Field:
    """One input field and its rules, checked in the order listed here."""

    name: str
    kind: str = STRING
    required: bool = False
    max_length: int | None = None
    min_value: Decimal | int | None = None
    max_value: Decimal | int | None = None
    places: int | None = 2  # numeric only
    choices: tuple[str, ...] | None = None
    pattern: str | None = None
    after_or_equal: str | None = None  # another date field
    after: str | None = None           # another date field
    not_future: bool = False
    future_only: bool = False
    unique: bool = False
    items: "Field | None" = None                  # arrays of scalars
    item_fields: tuple["Field", ...] = ()         # arrays of objects
    label: str | None = None
    messages: dict[str, str] = field(default_factory=dict)


@dataclass
class EntitySchema:
    name: str
    model: Any
    fields: tuple[Field, ...]
    business_rules: tuple[BusinessRule, ...] = ()

    @property
    def field_names(self) -> set[str]:
        return {f.name for f in self.fields}


class _RuleFailed(Exception):
    def __init__(self, rule: str, **params):
        super().__init__(rule)
        self.rule = rule
        self.params = params


_INVALID = object()
_UNSTORED = object()


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _label_for(spec: Field, key: str) -> str:
    if spec.label:
        return spec.label
    return key.replace("_", " ")


def _message(spec: Field, key: str, failure: _RuleFailed) -> str:
    template = spec.messages.get(failure.rule) or DEFAULT_MESSAGES[failure.rule]
    return template.format(label=_label_for(spec, key), **failure.params)


def _coerce_text(spec: Field, value) -> str:
    if not isinstance(value, str):
        raise _RuleFailed(STRING)
    value = value.strip()

    if spec.kind == EMAIL and not _EMAIL_RE.match(value):
        raise _RuleFailed(EMAIL)
    if spec.kind == URL:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise _RuleFailed(URL)
    return value


def _coerce_numeric(value) -> Decimal:
    if isinstance(value, bool):
        raise _RuleFailed(NUMERIC)
    try:
        if isinstance(value, Decimal):
            number = value
        elif isinstance(value, (int, float)):
            number = Decimal(str(value))
        elif isinstance(value, str):
            number = Decimal(value.strip())
        else:
            raise _RuleFailed(NUMERIC)
    except InvalidOperation:
        raise _RuleFailed(NUMERIC) from None
    if not number.is_finite():
        raise _RuleFailed(NUMERIC)
    return number


def _coerce_integer(value) -> int:
    if isinstance(value, bool):
        raise _RuleFailed(INTEGER)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_RE.match(value.strip()):
        return int(value.strip())
    if isinstance(value, (float, Decimal)):
        try:
            if value == int(value):
                return int(value)
        except (ValueError, OverflowError):
            pass
    raise _RuleFailed(INTEGER)


def _coerce_boolean(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise _RuleFailed(BOOLEAN)


def _coerce_date(value) -> date:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise _RuleFailed(DATE) from None
    if parsed is None:
        raise _RuleFailed(DATE)
    return parsed


def _check_range(spec: Field, number):
    if spec.min_value is not None and number < spec.min_value:
        raise _RuleFailed("min", min=spec.min_value)
    if spec.max_value is not None and number > spec.max_value:
        raise _RuleFailed("max", max=spec.max_value)


def _check_dates(spec: Field, value: date, siblings: Mapping[str, Any], stored=_UNSTORED):
    for rule, other_name in (("after_or_equal", spec.after_or_equal), ("after", spec.after)):
        if not other_name:
            continue
        other = siblings.get(other_name)
        # An empty or invalid reference date has already been reported on its own field.
        if not isinstance(other, date):
            continue
        if rule == "after_or_equal" and value < other:
            raise _RuleFailed(rule, other=other_name.replace("_", " "))
        if rule == "after" and value <= other:
            raise _RuleFailed(rule, other=other_name.replace("_", " "))

    # Checks against today only apply to dates that differ from the stored value.
    if value == stored:
        return
    if spec.not_future and value > today():
        raise _RuleFailed("before_or_equal", other="today")
    if spec.future_only and value <= today():
        raise _RuleFailed("after", other="today")


def _check_unique(spec: Field, value, model, instance):
    column = getattr(model, spec.name)
    query = db.session.query(model.id).filter(column == value)
    if instance is not None and instance.id is not None:
        query = query.filter(model.id != instance.id)
    if query.first() is not None:
        raise _RuleFailed("unique")


def _check_field(spec: Field, value, siblings, model, instance, stored=_UNSTORED):
    if spec.kind == ARRAY:
        if value is None or (isinstance(value, str) and not value.strip()):
            if spec.required:
                raise _RuleFailed("required")
            return None
        if not isinstance(value, list):
            raise _RuleFailed(ARRAY)
        if spec.required and not value:
            raise _RuleFailed("required")
        return value

    if _is_blank(value):
        if spec.required:
            raise _RuleFailed("required")
        return None

    if spec.kind in _TEXT_KINDS:
        value = _coerce_text(spec, value)
        if spec.max_length is not None and len(value) > spec.max_length:
            raise _RuleFailed("max_length", max=spec.max_length)
    elif spec.kind == NUMERIC:
        value = _coerce_numeric(value)
        _check_range(spec, value)
        if spec.places is not None:
            value = value.quantize(Decimal(1).scaleb(-spec.places), rounding=ROUND_HALF_UP)
    elif spec.kind == INTEGER:
        value = _coerce_integer(value)
        _check_range(spec, value)
    elif spec.kind == BOOLEAN:
        value = _coerce_boolean(value)
    elif spec.kind == DATE:
        value = _coerce_date(value)
    else:
        raise ValueError(f"Unknown field kind: {spec.kind}")

    if spec.choices is not None and value not in spec.choices:
        raise _RuleFailed("in")
    if spec.pattern is not None and not re.match(spec.pattern, str(value)):
        raise _RuleFailed("regex")
    if spec.kind == DATE:
        _check_dates(spec, value, siblings, stored)
    if spec.unique and model is not None:
        _check_unique(spec, value, model, instance)
    return value


def _validate_items(spec: Field, values: list, key: str, errors: dict) -> list:
    cleaned = []
    for index, item in enumerate(values):
        item_key = f"{key}.{index}"
        if spec.item_fields:
            if not isinstance(item, Mapping):
                errors.setdefault(item_key, []).append(
                    DEFAULT_MESSAGES["object"].format(label=item_key)
                )
                continue
            out: dict[str, Any] = {}
            for sub in spec.item_fields:
                result = _validate_field(sub, item.get(sub.name), f"{item_key}.{sub.name}", out, errors)
                if result is not _INVALID:
                    out[sub.name] = result
            cleaned.append(out)
        elif spec.items is not None:
            result = _validate_field(spec.items, item, item_key, {}, errors)
            if result is not _INVALID:
                cleaned.append(result)
        else:
            cleaned.append(item)
    return cleaned


def _validate_field(spec: Field, value, key: str, siblings, errors: dict, model=None, instance=None, stored=_UNSTORED):
    try:
        normalized = _check_field(spec, value, siblings, model, instance, stored)
    except _RuleFailed as failure:
        errors.setdefault(key, []).append(_message(spec, key, failure))
        return _INVALID

    if spec.kind == ARRAY and normalized:
        before = len(errors)
        normalized = _validate_items(spec, normalized, key, errors)
        if len(errors) != before:
            return _INVALID
    return normalized


def validate(data: Mapping[str, Any] | None, schema: EntitySchema, *, instance=None) -> dict:
    """
    Validate `data` against `schema`.

    On update pass the persisted `instance`: its current values fill in
    fields the payload omits, and it is excluded from uniqueness checks.
    Stored dates that are left unchanged skip the checks against today.

    Returns the normalized payload (every schema field, trimmed strings,
    Decimal amounts, date objects, real booleans). Raises ValidationFailure.
    """
    stored: dict[str, Any] = instance.snapshot() if instance is not None else {}
    source: dict[str, Any] = dict(stored)
    if isinstance(data, Mapping):
        known = schema.field_names
        source.update({k: v for k, v in data.items() if k in known})

    errors: dict[str, list[str]] = {}
    clean: dict[str, Any] = {}

    for spec in schema.fields:
        result = _validate_field(
            spec, source.get(spec.name), spec.name, clean, errors,
            model=schema.model, instance=instance, stored=stored.get(spec.name, _UNSTORED),
        )
        if result is not _INVALID:
            clean[spec.name] = result

    if not errors:
        for rule in schema.business_rules:
            for key, message in rule(clean):
                errors.setdefault(key, []).append(message)

    if errors:
        raise ValidationFailure(errors)
    return clean
