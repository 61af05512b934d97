"""Dynamic endpoint binder — CRUD handlers generated from model definitions.

``ModelEndpoints`` is the handler bundle for one published model. The
``EndpointBinder`` maps URL segments to bundles; the records router looks
every request up there, so installing or uninstalling a bundle is all it
takes to add, replace or tear down a model's endpoints.
"""

import logging
import math
import threading
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from backend.core.exceptions import ResourceConflictError, ResourceNotFoundError
from backend.core.security import Principal
from backend.models.dynamic_record import DynamicRecord
from backend.schemas.schemas import ModelDefinition
from backend.services.authorization import Operation, enforce, owner_scope
from backend.services.field_validation import validate_new_record, validate_patch
from backend.services.record_store import RecordStore, record_data, serialize_record

logger = logging.getLogger("dynamic_platform.endpoints")


class ModelEndpoints:
    """The five CRUD operations of one model.

    Each handler validates and authorizes before it touches the store.
    """

    def __init__(self, definition: ModelDefinition):
        self.definition = definition

    @property
    def model_name(self) -> str:
        return self.definition.name

    def _fetch(self, store: RecordStore, record_id: str) -> DynamicRecord:
        record = store.find_one(record_id, self.model_name)
        if record is None:
            raise ResourceNotFoundError("Record not found")
        return record

    def _check_unique(
        self, store: RecordStore, data: Dict[str, Any], exclude_id: Optional[str] = None,
    ) -> None:
        for field in self.definition.fields:
            if not field.unique or data.get(field.name) is None:
                continue
            clash = store.find_by_value(self.model_name, field.name, data[field.name], exclude_id)
            if clash is not None:
                raise ResourceConflictError(
                    f"A {self.model_name} with {field.name} '{data[field.name]}' already exists"
                )

    def create(self, store: RecordStore, principal: Principal, body: Any) -> DynamicRecord:
        enforce(self.definition, principal, Operation.create)
        data = validate_new_record(self.definition, body)

        owner_id = None
        if self.definition.owner_field:
            owner_id = principal.id
            data[self.definition.owner_field] = principal.id

        self._check_unique(store, data)
        record = store.create(self.model_name, data, owner_id)
        logger.info("Created %s record %s", self.model_name, record.id)
        return record

    def list(
        self, store: RecordStore, principal: Principal, page: int = 1, limit: int = 10,
    ) -> Tuple[List[DynamicRecord], Dict[str, int]]:
        """Page of records, newest first, plus pagination metadata.

        Non-admins on a model with an owner field only see their own records.
        """
        enforce(self.definition, principal, Operation.read)

        query_filter: Dict[str, Any] = {"model_name": self.model_name}
        owner_id = owner_scope(self.definition, principal)
        if owner_id is not None:
            query_filter["owner_id"] = owner_id

        records, total = store.find_many(
            query_filter, skip=(page - 1) * limit, take=limit, order="desc",
        )
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        }
        return records, pagination

    def get(self, store: RecordStore, principal: Principal, record_id: str) -> DynamicRecord:
        record = self._fetch(store, record_id)
        enforce(self.definition, principal, Operation.read, record)
        return record

    def update(
        self, store: RecordStore, principal: Principal, record_id: str, patch: Any,
    ) -> DynamicRecord:
        """Shallow-merge ``patch`` over the record's data; owner and id never change."""
        record = self._fetch(store, record_id)
        enforce(self.definition, principal, Operation.update, record)
        changes = validate_patch(self.definition, patch)

        merged = {**record_data(record), **changes}
        self._check_unique(store, changes, exclude_id=record.id)
        updated = store.update(record.id, merged)
        logger.info("Updated %s record %s", self.model_name, record.id)
        return updated

    def delete(self, store: RecordStore, principal: Principal, record_id: str) -> Dict[str, Any]:
        """Remove the record; returns its last serialized state."""
        record = self._fetch(store, record_id)
        enforce(self.definition, principal, Operation.delete, record)
        snapshot = serialize_record(record)
        store.delete(record.id)
        logger.info("Deleted %s record %s", self.model_name, record_id)
        return snapshot


class EndpointBinder:
    """Route table from URL segment (lowercased model name) to handler bundle.

    Writers build a new mapping and swap it in under a lock; readers just
    take the current mapping, so a lookup sees the table either before or
    after a change and never in between.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._routes: Mapping[str, ModelEndpoints] = MappingProxyType({})

    def install(self, definition: ModelDefinition) -> ModelEndpoints:
        endpoints = ModelEndpoints(definition)
        with self._lock:
            routes = dict(self._routes)
            replacing = definition.path in routes
            routes[definition.path] = endpoints
            self._routes = MappingProxyType(routes)
        logger.info(
            "%s routes for %s at /api/%s",
            "Replaced" if replacing else "Registered", definition.name, definition.path,
        )
        return endpoints

    def uninstall(self, name: str) -> bool:
        segment = name.lower()
        with self._lock:
            if segment not in self._routes:
                return False
            routes = dict(self._routes)
            del routes[segment]
            self._routes = MappingProxyType(routes)
        logger.info("Removed routes at /api/%s", segment)
        return True

    def resolve(self, segment: str) -> Optional[ModelEndpoints]:
        return self._routes.get(segment.lower())

    def replace_all(self, definitions: Iterable[ModelDefinition]) -> None:
        """Swap in a table holding exactly ``definitions``."""
        routes = {d.path: ModelEndpoints(d) for d in definitions}
        with self._lock:
            self._routes = MappingProxyType(routes)
        logger.info("Bound %d models: %s", len(routes), ", ".join(sorted(routes)) or "-")

    def installed(self) -> List[str]:
        return sorted(self._routes)
