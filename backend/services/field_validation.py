"""Edge validation of record payloads against a model's declared fields.

Storage keeps ``data`` as an opaque JSON blob; this module is where values are
checked against ``ModelField.type`` on the way in.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from backend.core.exceptions import MissingFieldError, ValidationError
from backend.schemas.schemas import FieldType, ModelDefinition, ModelField


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # NaN and the infinities parse from JSON bodies but cannot be rendered back.
    return isinstance(value, int) or math.isfinite(value)


def _is_date(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


_CHECKS = {
    FieldType.string: lambda v: isinstance(v, str),
    FieldType.number: _is_number,
    FieldType.boolean: lambda v: isinstance(v, bool),
    FieldType.date: _is_date,
}


def value_matches(field_type: FieldType, value: Any) -> bool:
    """True when ``value`` is a valid JSON value for ``field_type``."""
    return _CHECKS[field_type](value)


def type_error(field: ModelField, value: Any) -> Optional[str]:
    """Describe why ``value`` cannot be stored in ``field``, or None if it can."""
    if value is None:
        if field.required:
            return f"Field {field.name} cannot be null"
        return None
    if not value_matches(field.type, value):
        expected = "an ISO 8601 date" if field.type == FieldType.date else field.type.value
        return f"Field {field.name} must be {expected}"
    return None


def _check_values(definition: ModelDefinition, payload: Dict[str, Any]) -> List[str]:
    errors = []
    for key, value in payload.items():
        field = definition.field(key)
        if field is None:
            errors.append(f"Unknown field {key}")
            continue
        error = type_error(field, value)
        if error:
            errors.append(error)
    return errors


def _without_owner(definition: ModelDefinition, payload: Dict[str, Any]) -> Dict[str, Any]:
    if not definition.owner_field:
        return dict(payload)
    return {k: v for k, v in payload.items() if k != definition.owner_field}


def validate_new_record(definition: ModelDefinition, body: Any) -> Dict[str, Any]:
    """Check a create body and return the data to store (defaults filled in).

    Any client value for the owner field is dropped; the caller stamps it.
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    for field in definition.fields:
        if field.required and field.name not in body:
            raise MissingFieldError(field.name)

    data = _without_owner(definition, body)
    errors = _check_values(definition, data)
    if errors:
        raise ValidationError("Invalid record", errors)

    for field in definition.fields:
        if field.name not in data and field.default is not None:
            data[field.name] = field.default
    return data


def validate_patch(definition: ModelDefinition, patch: Any) -> Dict[str, Any]:
    """Check an update body; the owner field cannot be reassigned through it."""
    if not isinstance(patch, dict):
        raise ValidationError("Request body must be a JSON object")

    data = _without_owner(definition, patch)
    errors = _check_values(definition, data)
    if errors:
        raise ValidationError("Invalid record", errors)
    return data
