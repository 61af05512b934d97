"""Durable keyed storage for model definitions.

Two backends share one contract (``read_all``, ``read_one``, ``write``,
``remove``), keyed by the lowercased model name: a directory of
``<name>.json`` files, and the ``model_definitions`` table. Both raise
``StorageError`` on I/O failure.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.config import settings
from backend.core.exceptions import StorageError
from backend.models.model_definition import ModelDefinitionRow

logger = logging.getLogger("dynamic_platform.definitions")


class FileDefinitionStore:
    """One pretty-printed JSON file per model in ``directory``."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name.lower()}.json"

    def read_all(self) -> List[Dict[str, Any]]:
        if not self.directory.exists():
            return []
        definitions = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                definitions.append(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                raise StorageError(f"Failed to load model file {path.name}: {e}")
        return definitions

    def read_one(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to load model {name}: {e}")

    def write(self, definition: Dict[str, Any]) -> None:
        """Write through a temp file and rename, so readers never see half a file."""
        path = self._path(definition["name"])
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(definition, f, indent=2)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StorageError(f"Failed to save model: {e}")
        logger.debug("Model %s saved to %s", definition["name"], path)

    def remove(self, name: str) -> None:
        try:
            self._path(name).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete model: {e}")


class DatabaseDefinitionStore:
    """Definitions as JSON text in the ``model_definitions`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def read_all(self) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            rows = db.query(ModelDefinitionRow).order_by(ModelDefinitionRow.key).all()
            return [json.loads(row.definition_json) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load models: {e}")
        finally:
            db.close()

    def read_one(self, name: str) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            row = db.get(ModelDefinitionRow, name.lower())
            return json.loads(row.definition_json) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load model {name}: {e}")
        finally:
            db.close()

    def write(self, definition: Dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            key = definition["name"].lower()
            row = db.get(ModelDefinitionRow, key)
            if row is None:
                row = ModelDefinitionRow(key=key)
                db.add(row)
            row.definition_json = json.dumps(definition)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to save model: {e}")
        finally:
            db.close()

    def remove(self, name: str) -> None:
        db = self.session_factory()
        try:
            db.query(ModelDefinitionRow).filter(ModelDefinitionRow.key == name.lower()).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to delete model: {e}")
        finally:
            db.close()


def build_definition_store():
    """The store selected by ``settings.MODEL_STORE``."""
    if settings.MODEL_STORE == "database":
        from backend.db.session import SessionLocal
        return DatabaseDefinitionStore(SessionLocal)
    if settings.MODEL_STORE != "file":
        raise ValueError(f"Unknown MODEL_STORE: {settings.MODEL_STORE}")
    return FileDefinitionStore(settings.MODELS_DIR)
