"""Model registry — validates, persists and indexes model definitions.

Every successful publish, update or remove re-installs or tears down the
model's endpoints before returning, so the registry and the live route table
never disagree. Writes go to the definition store first; if that fails
nothing in memory changes.
"""

import logging
import re
import threading
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import pydantic

from backend.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, StorageError, ValidationError,
)
from backend.schemas.schemas import FieldType, ModelDefinition, Permission
from backend.services.definition_store import build_definition_store
from backend.services.dynamic_endpoints import EndpointBinder
from backend.services.field_validation import value_matches

logger = logging.getLogger("dynamic_platform.registry")

# Path segments already taken by the static API.
RESERVED_NAMES = {"models", "auth", "admin", "health", "docs", "redoc", "openapi.json"}
NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
FIELD_TYPES = {t.value for t in FieldType}
PERMISSIONS = {p.value for p in Permission}


def _validate_fields(fields: List[Any], errors: List[str]) -> set:
    names = set()
    for index, field in enumerate(fields):
        if not isinstance(field, dict):
            errors.append(f"Field at index {index} must be an object")
            continue

        name = field.get("name")
        if not name or not isinstance(name, str):
            errors.append(f"Field at index {index} must have a name")
        elif name in names:
            errors.append(f"Duplicate field name: {name}")
        else:
            names.add(name)

        field_type = field.get("type")
        if not isinstance(field_type, str) or field_type not in FIELD_TYPES:
            errors.append(f"Field {name} has invalid type: {field_type}")
        elif field.get("default") is not None and not value_matches(
            FieldType(field_type), field["default"]
        ):
            errors.append(f"Default value of field {name} must be {field_type}")

        for flag in ("required", "unique"):
            if flag in field and not isinstance(field[flag], bool):
                errors.append(f"Field {name}: {flag} must be a boolean")
        if field.get("relation") is not None and not isinstance(field["relation"], str):
            errors.append(f"Field {name}: relation must be a model name")
    return names


def validate_model(payload: Any) -> List[str]:
    """Every problem with a model declaration; empty when it is publishable."""
    if not isinstance(payload, dict):
        return ["Model definition must be a JSON object"]

    errors: List[str] = []
    name = payload.get("name")
    if not name or not isinstance(name, str):
        errors.append("Model name is required and must be a string")
    elif not NAME_PATTERN.match(name):
        errors.append(
            "Model name must start with a letter and contain only letters, digits, '_' or '-'"
        )
    elif name.lower() in RESERVED_NAMES:
        errors.append(f"Model name '{name}' is reserved")

    table_name = payload.get("tableName")
    if table_name is not None and (not isinstance(table_name, str) or not table_name):
        errors.append("tableName must be a non-empty string")

    fields = payload.get("fields")
    field_names = set()
    if not isinstance(fields, list) or len(fields) == 0:
        errors.append("Model must have at least one field")
    else:
        field_names = _validate_fields(fields, errors)

    owner_field = payload.get("ownerField")
    if owner_field is not None:
        if not isinstance(owner_field, str) or not owner_field:
            errors.append("ownerField must be a non-empty string")
        elif owner_field in field_names:
            errors.append(f"ownerField {owner_field} collides with a field name")

    rbac = payload.get("rbac")
    if not isinstance(rbac, dict) or not rbac:
        errors.append("Model must have RBAC configuration")
    else:
        for role, tokens in rbac.items():
            if not isinstance(tokens, list):
                errors.append(f"Permissions for role {role} must be a list")
                continue
            unknown = [t for t in tokens if not isinstance(t, str) or t not in PERMISSIONS]
            if unknown:
                errors.append(f"Role {role} has invalid permissions: {unknown}")

    return errors


def _now() -> datetime:
    return datetime.now(timezone.utc)


def build_definition(
    payload: Dict[str, Any], created_at: datetime, updated_at: datetime,
) -> ModelDefinition:
    """Normalized definition from a validated payload; client timestamps are ignored."""
    data = {
        "name": payload["name"],
        "tableName": payload.get("tableName") or payload["name"].lower() + "s",
        "fields": payload["fields"],
        "ownerField": payload.get("ownerField") or None,
        "rbac": payload["rbac"],
        "createdAt": created_at,
        "updatedAt": updated_at,
    }
    try:
        return ModelDefinition.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Validation failed", [err["msg"] for err in e.errors()]
        )


class ModelRegistry:
    """In-memory index of published models backed by a definition store.

    The index is keyed by URL segment (lowercased name) and is replaced, never
    mutated, under ``_lock``.
    """

    def __init__(self, store, binder: Optional[EndpointBinder] = None):
        self.store = store
        self.binder = binder or EndpointBinder()
        self._lock = threading.RLock()
        self._definitions: Mapping[str, ModelDefinition] = MappingProxyType({})

    # ---- reads ----

    def get(self, name: str) -> Optional[ModelDefinition]:
        """Definition whose name is exactly ``name``."""
        definition = self._definitions.get(name.lower())
        if definition is not None and definition.name == name:
            return definition
        return None

    def resolve(self, segment: str) -> Optional[ModelDefinition]:
        """Definition served at ``/api/<segment>`` (case-insensitive)."""
        return self._definitions.get(segment.lower())

    def list(self) -> List[ModelDefinition]:
        return list(self._definitions.values())

    def names(self) -> List[str]:
        return [d.name for d in self._definitions.values()]

    # ---- writes ----

    def _swap(self, put: Optional[ModelDefinition] = None, drop: Optional[str] = None) -> None:
        definitions = dict(self._definitions)
        if drop is not None:
            definitions.pop(drop.lower(), None)
        if put is not None:
            definitions[put.path] = put
        self._definitions = MappingProxyType(definitions)

    @staticmethod
    def _check(payload: Any) -> None:
        errors = validate_model(payload)
        if errors:
            raise ValidationError("Validation failed", errors)

    def publish(self, payload: Any) -> ModelDefinition:
        """Store ``payload`` as the latest definition of its model and serve it.

        Publishing over an existing model replaces it entirely; only the
        original ``createdAt`` is carried over.
        """
        self._check(payload)
        with self._lock:
            existing = self.resolve(payload["name"])
            now = _now()
            definition = build_definition(
                payload, created_at=existing.created_at if existing else now, updated_at=now,
            )
            self.store.write(definition.to_dict())
            self._swap(put=definition)
            self.binder.install(definition)
        logger.info("Model %s %s", definition.name, "republished" if existing else "published")
        return definition

    def _move(self, old: ModelDefinition, new: ModelDefinition) -> None:
        """Re-key a definition in the store; the old entry is restored if the new write fails."""
        self.store.remove(old.name)
        try:
            self.store.write(new.to_dict())
        except StorageError:
            self.store.write(old.to_dict())
            raise

    def update(self, name: str, payload: Any) -> ModelDefinition:
        """Replace an existing definition, keeping its ``createdAt``."""
        with self._lock:
            existing = self.get(name)
            if existing is None:
                raise ResourceNotFoundError("Model not found")
            self._check(payload)

            renamed = payload["name"].lower() != existing.path
            if renamed and self.resolve(payload["name"]) is not None:
                raise ResourceConflictError(f"Model {payload['name']} already exists")

            definition = build_definition(payload, created_at=existing.created_at, updated_at=_now())
            if renamed:
                self._move(existing, definition)
                self._swap(put=definition, drop=existing.name)
                self.binder.uninstall(existing.name)
            else:
                self.store.write(definition.to_dict())
                self._swap(put=definition)
            self.binder.install(definition)
        logger.info("Model %s updated", definition.name)
        return definition

    def remove(self, name: str) -> ModelDefinition:
        """Delete the definition and its endpoints; its records stay in the store."""
        with self._lock:
            existing = self.get(name)
            if existing is None:
                raise ResourceNotFoundError("Model not found")
            self.store.remove(existing.name)
            self._swap(drop=existing.name)
            self.binder.uninstall(existing.name)
        logger.info("Model %s deleted", existing.name)
        return existing

    def load(self) -> int:
        """Replace the index with the store's contents and re-bind every model.

        Stored definitions that no longer validate are skipped with a warning.
        """
        loaded: Dict[str, ModelDefinition] = {}
        for payload in self.store.read_all():
            errors = validate_model(payload)
            if errors:
                logger.warning(
                    "Skipping stored model %s: %s", payload.get("name"), ", ".join(errors)
                )
                continue
            now = _now()
            try:
                definition = build_definition(
                    payload,
                    created_at=payload.get("createdAt") or now,
                    updated_at=payload.get("updatedAt") or now,
                )
            except ValidationError as e:
                logger.warning("Skipping stored model %s: %s", payload.get("name"), e.message)
                continue
            loaded[definition.path] = definition

        with self._lock:
            self._definitions = MappingProxyType(loaded)
            self.binder.replace_all(loaded.values())
        logger.info("Initialized %d dynamic models", len(loaded))
        return len(loaded)


model_registry = ModelRegistry(build_definition_store())
