"""
Unit tests for the model registry.

Uses a private registry per test so the application's singleton is untouched.
"""

import json
import time

import pytest

from backend.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, StorageError, ValidationError,
)
from backend.services.definition_store import FileDefinitionStore
from backend.services.dynamic_endpoints import EndpointBinder
from backend.services.model_registry import ModelRegistry, validate_model


class FailingStore(FileDefinitionStore):
    """File store whose writes and removals can be made to fail."""

    fail = False
    fail_remove = False
    fail_write_for = ()

    def write(self, definition):
        if self.fail or definition["name"] in self.fail_write_for:
            raise StorageError("Failed to save model: disk full")
        super().write(definition)

    def remove(self, name):
        if self.fail or self.fail_remove:
            raise StorageError("Failed to delete model: disk full")
        super().remove(name)


@pytest.fixture
def store(tmp_path):
    return FailingStore(str(tmp_path / "models"))


@pytest.fixture
def registry(store):
    return ModelRegistry(store, EndpointBinder())


class TestValidateModel:
    def test_valid_payload_has_no_errors(self, product_payload):
        assert validate_model(product_payload) == []

    def test_empty_fields(self, product_payload):
        product_payload["fields"] = []
        assert validate_model(product_payload) == ["Model must have at least one field"]

    def test_missing_name(self, product_payload):
        del product_payload["name"]
        assert "Model name is required and must be a string" in validate_model(product_payload)

    def test_non_string_name(self, product_payload):
        product_payload["name"] = 42
        assert "Model name is required and must be a string" in validate_model(product_payload)

    @pytest.mark.parametrize("name", ["models", "Auth", "ADMIN", "health"])
    def test_reserved_names(self, product_payload, name):
        product_payload["name"] = name
        assert f"Model name '{name}' is reserved" in validate_model(product_payload)

    @pytest.mark.parametrize("name", ["1st", "has space", "a/b", "../etc"])
    def test_malformed_names(self, product_payload, name):
        product_payload["name"] = name
        assert any("must start with a letter" in e for e in validate_model(product_payload))

    def test_field_without_name(self, product_payload):
        product_payload["fields"].append({"type": "string"})
        assert "Field at index 3 must have a name" in validate_model(product_payload)

    def test_field_with_unknown_type(self, product_payload):
        product_payload["fields"].append({"name": "tags", "type": "array"})
        assert "Field tags has invalid type: array" in validate_model(product_payload)

    def test_duplicate_field_names(self, product_payload):
        product_payload["fields"].append({"name": "title", "type": "string"})
        assert "Duplicate field name: title" in validate_model(product_payload)

    def test_owner_field_collision(self, product_payload):
        product_payload["ownerField"] = "title"
        assert "ownerField title collides with a field name" in validate_model(product_payload)

    def test_missing_rbac(self, product_payload):
        del product_payload["rbac"]
        assert "Model must have RBAC configuration" in validate_model(product_payload)

    def test_rbac_not_an_object(self, product_payload):
        product_payload["rbac"] = ["ADMIN"]
        assert "Model must have RBAC configuration" in validate_model(product_payload)

    def test_unknown_permission_token(self, product_payload):
        product_payload["rbac"]["VIEWER"] = ["read", "export"]
        errors = validate_model(product_payload)
        assert any(e.startswith("Role VIEWER has invalid permissions") for e in errors)

    def test_default_must_match_type(self, product_payload):
        product_payload["fields"][1]["default"] = "free"
        assert "Default value of field price must be number" in validate_model(product_payload)

    def test_collects_every_error(self):
        errors = validate_model({"fields": [], "rbac": None})
        assert len(errors) == 3

    def test_non_object_payload(self):
        assert validate_model(["not", "a", "model"]) == ["Model definition must be a JSON object"]


class TestPublish:
    def test_publish_normalizes_and_stamps(self, registry, product_payload):
        definition = registry.publish(product_payload)

        assert definition.name == "Product"
        assert definition.table_name == "products"
        assert definition.created_at == definition.updated_at
        assert definition.fields[0].required is True
        assert definition.fields[1].required is False

    def test_publish_keeps_explicit_table_name(self, registry, product_payload):
        product_payload["tableName"] = "catalog_items"
        assert registry.publish(product_payload).table_name == "catalog_items"

    def test_publish_persists(self, registry, store, product_payload):
        registry.publish(product_payload)
        stored = store.read_one("Product")
        assert stored["name"] == "Product"
        assert stored["tableName"] == "products"
        assert "createdAt" in stored and "updatedAt" in stored

    def test_publish_installs_endpoints(self, registry, product_payload):
        registry.publish(product_payload)
        endpoints = registry.binder.resolve("product")
        assert endpoints is not None
        assert endpoints.definition.name == "Product"

    def test_publish_rejects_invalid_payload(self, registry, product_payload):
        product_payload["fields"] = []
        with pytest.raises(ValidationError) as exc:
            registry.publish(product_payload)
        assert "must have at least one field" in exc.value.message
        assert registry.list() == []
        assert registry.binder.installed() == []

    def test_republish_is_overwrite_not_merge(self, registry, product_payload):
        first = registry.publish(product_payload)
        time.sleep(0.001)
        second = registry.publish(product_payload)

        assert first.model_dump(exclude={"updated_at"}) == second.model_dump(exclude={"updated_at"})
        assert second.updated_at > first.updated_at

    def test_republish_drops_removed_fields(self, registry, product_payload):
        registry.publish(product_payload)
        product_payload["fields"] = [{"name": "sku", "type": "string"}]
        definition = registry.publish(product_payload)
        assert [f.name for f in definition.fields] == ["sku"]
        assert registry.binder.resolve("product").definition.field("title") is None

    def test_client_timestamps_are_ignored(self, registry, product_payload):
        product_payload["createdAt"] = "2001-01-01T00:00:00Z"
        definition = registry.publish(product_payload)
        assert definition.created_at.year != 2001

    def test_storage_failure_leaves_nothing_behind(self, registry, store, product_payload):
        store.fail = True
        with pytest.raises(StorageError):
            registry.publish(product_payload)
        assert registry.get("Product") is None
        assert registry.binder.resolve("product") is None

    def test_storage_failure_keeps_previous_definition(self, registry, store, product_payload):
        original = registry.publish(product_payload)
        store.fail = True
        product_payload["fields"] = [{"name": "sku", "type": "string"}]
        with pytest.raises(StorageError):
            registry.publish(product_payload)
        assert registry.get("Product") == original
        assert registry.binder.resolve("product").definition == original


class TestLookup:
    def test_get_is_exact(self, registry, product_payload):
        registry.publish(product_payload)
        assert registry.get("Product") is not None
        assert registry.get("product") is None
        assert registry.get("Missing") is None

    def test_resolve_is_case_insensitive(self, registry, product_payload):
        registry.publish(product_payload)
        assert registry.resolve("PRODUCT").name == "Product"

    def test_list(self, registry, product_payload, task_payload):
        registry.publish(product_payload)
        registry.publish(task_payload)
        assert sorted(registry.names()) == ["Product", "Task"]

    def test_same_name_different_case_replaces(self, registry, product_payload):
        registry.publish(product_payload)
        product_payload["name"] = "PRODUCT"
        registry.publish(product_payload)
        assert registry.names() == ["PRODUCT"]
        assert registry.binder.installed() == ["product"]


class TestUpdate:
    def test_update_preserves_created_at(self, registry, product_payload):
        original = registry.publish(product_payload)
        time.sleep(0.001)
        product_payload["fields"].append({"name": "sku", "type": "string", "unique": True})
        updated = registry.update("Product", product_payload)

        assert updated.created_at == original.created_at
        assert updated.updated_at > original.updated_at
        assert registry.binder.resolve("product").definition.field("sku").unique is True

    def test_update_unknown_model(self, registry, product_payload):
        with pytest.raises(ResourceNotFoundError):
            registry.update("Product", product_payload)

    def test_update_revalidates(self, registry, product_payload):
        registry.publish(product_payload)
        product_payload["rbac"] = {}
        with pytest.raises(ValidationError):
            registry.update("Product", product_payload)

    def test_update_can_rename(self, registry, store, product_payload):
        registry.publish(product_payload)
        product_payload["name"] = "Item"
        registry.update("Product", product_payload)

        assert registry.get("Product") is None
        assert registry.get("Item") is not None
        assert registry.binder.installed() == ["item"]
        assert store.read_one("Product") is None

    def test_failed_rename_keeps_store_intact_when_remove_fails(
        self, registry, store, product_payload
    ):
        registry.publish(product_payload)
        store.fail_remove = True
        product_payload["name"] = "Item"
        with pytest.raises(StorageError):
            registry.update("Product", product_payload)

        assert [d["name"] for d in store.read_all()] == ["Product"]
        assert registry.names() == ["Product"]
        assert registry.binder.installed() == ["product"]

        reloaded = ModelRegistry(store, EndpointBinder())
        assert reloaded.load() == 1

    def test_failed_rename_restores_old_entry_when_write_fails(
        self, registry, store, product_payload
    ):
        original = registry.publish(product_payload)
        store.fail_write_for = {"Item"}
        product_payload["name"] = "Item"
        with pytest.raises(StorageError):
            registry.update("Product", product_payload)

        assert [d["name"] for d in store.read_all()] == ["Product"]
        assert store.read_one("Product") == original.to_dict()
        assert registry.get("Product") == original
        assert registry.binder.resolve("item") is None

    def test_rename_onto_existing_model_conflicts(self, registry, product_payload, task_payload):
        registry.publish(product_payload)
        registry.publish(task_payload)
        product_payload["name"] = "Task"
        with pytest.raises(ResourceConflictError):
            registry.update("Product", product_payload)


class TestRemove:
    def test_remove_tears_down_endpoints(self, registry, store, product_payload):
        registry.publish(product_payload)
        registry.remove("Product")
        assert registry.get("Product") is None
        assert registry.binder.resolve("product") is None
        assert store.read_one("Product") is None

    def test_remove_unknown_model(self, registry):
        with pytest.raises(ResourceNotFoundError):
            registry.remove("Nope")

    def test_remove_storage_failure_keeps_model(self, registry, store, product_payload):
        registry.publish(product_payload)
        store.fail = True
        with pytest.raises(StorageError):
            registry.remove("Product")
        assert registry.get("Product") is not None
        assert registry.binder.resolve("product") is not None


class TestLoad:
    def test_load_restores_published_models(self, store, product_payload, task_payload):
        first = ModelRegistry(store, EndpointBinder())
        published = first.publish(product_payload)
        first.publish(task_payload)

        second = ModelRegistry(store, EndpointBinder())
        assert second.load() == 2
        assert second.get("Product") == published
        assert second.binder.installed() == ["product", "task"]

    def test_load_skips_invalid_files(self, store, product_payload):
        registry = ModelRegistry(store, EndpointBinder())
        registry.publish(product_payload)
        (store.directory / "broken.json").write_text(
            json.dumps({"name": "Broken", "fields": [], "rbac": {}}), encoding="utf-8"
        )
        assert registry.load() == 1
        assert registry.get("Broken") is None

    def test_load_drops_models_removed_from_store(self, registry, store, product_payload):
        registry.publish(product_payload)
        store.remove("Product")
        registry.load()
        assert registry.list() == []
        assert registry.binder.resolve("product") is None
