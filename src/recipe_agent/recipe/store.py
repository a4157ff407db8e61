"""
Bindings Store - persistence for discovered bindings.

Records are keyed by binding id and looked up by URL. Writers may pass the
version they loaded; if the stored record has moved on since, the write is
rejected with StaleBindingsError instead of silently overwriting another
run's repairs.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from recipe_agent.exceptions import StaleBindingsError
from recipe_agent.recipe.bindings import PageBindings, matches_url

logger = logging.getLogger(__name__)


class BindingStore(ABC):
    """Keyed store of PageBindings."""

    @abstractmethod
    def get(self, binding_id: str) -> Optional[PageBindings]:
        ...

    @abstractmethod
    def put(self, bindings: PageBindings, expected_version: Optional[int] = None) -> None:
        """
        Store a record under its id.

        Raises:
            StaleBindingsError: expected_version was given and the stored
                record has a different version
        """
        ...

    @abstractmethod
    def all(self) -> List[PageBindings]:
        ...

    @abstractmethod
    def delete(self, binding_id: str) -> bool:
        ...

    def query(self, url: str) -> Optional[PageBindings]:
        """First record whose urlPattern matches url (most recently updated wins)."""
        matches = [b for b in self.all() if matches_url(b, url)]
        if not matches:
            return None
        return max(matches, key=lambda b: b.updated_at)

    def clear_for_url(self, url: str) -> int:
        """Delete every record matching url. Returns the number removed."""
        removed = 0
        for bindings in self.all():
            if matches_url(bindings, url) and self.delete(bindings.id):
                removed += 1
        return removed

    def clear_all(self) -> None:
        for bindings in self.all():
            self.delete(bindings.id)

    def _check_version(self, bindings: PageBindings, expected_version: Optional[int]) -> None:
        if expected_version is None:
            return
        stored = self.get(bindings.id)
        if stored is not None and stored.version != expected_version:
            raise StaleBindingsError(bindings.id, expected_version, stored.version)


class InMemoryBindingStore(BindingStore):
    """Process-local store, used in tests and one-off runs."""

    def __init__(self, records: Optional[List[PageBindings]] = None):
        self._records: Dict[str, PageBindings] = {b.id: b for b in records or []}

    def get(self, binding_id: str) -> Optional[PageBindings]:
        return self._records.get(binding_id)

    def put(self, bindings: PageBindings, expected_version: Optional[int] = None) -> None:
        self._check_version(bindings, expected_version)
        self._records[bindings.id] = bindings

    def all(self) -> List[PageBindings]:
        return list(self._records.values())

    def delete(self, binding_id: str) -> bool:
        return self._records.pop(binding_id, None) is not None

    def clear_all(self) -> None:
        self._records.clear()


class JsonFileBindingStore(BindingStore):
    """
    Bindings persisted to a single JSON file.

    The file is re-read before every operation so that separate runs (and
    separate processes) see each other's writes before the version check.
    """

    def __init__(self, path: str = "~/.recipe-agent/bindings.json"):
        self.path = Path(path).expanduser()

    def _load(self) -> Dict[str, PageBindings]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read bindings store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring bindings store {self.path}: not a JSON object")
            return {}

        records: Dict[str, PageBindings] = {}
        for binding_id, raw in data.items():
            try:
                records[binding_id] = PageBindings.from_dict(raw)
            except ValidationError as e:
                logger.warning(f"Skipping unreadable bindings {binding_id}: {e}")
        return records

    def _save(self, records: Dict[str, PageBindings]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {binding_id: b.to_dict() for binding_id, b in records.items()}
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(self.path)

    def get(self, binding_id: str) -> Optional[PageBindings]:
        return self._load().get(binding_id)

    def put(self, bindings: PageBindings, expected_version: Optional[int] = None) -> None:
        records = self._load()
        stored = records.get(bindings.id)
        if expected_version is not None and stored is not None and stored.version != expected_version:
            raise StaleBindingsError(bindings.id, expected_version, stored.version)

        records[bindings.id] = bindings
        self._save(records)
        logger.debug(f"Saved bindings {bindings.id} v{bindings.version} to {self.path}")

    def all(self) -> List[PageBindings]:
        return list(self._load().values())

    def delete(self, binding_id: str) -> bool:
        records = self._load()
        if records.pop(binding_id, None) is None:
            return False
        self._save(records)
        return True

    def clear_all(self) -> None:
        self._save({})
