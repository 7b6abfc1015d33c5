"""
JSON file store.

Keeps the whole store in memory and rewrites the file after every
change. Good enough for a single tutor's schedule and the CLI.
"""

import logging
from pathlib import Path
from typing import Callable, Optional
from datetime import datetime

from ..models.errors import PersistenceError
from ..models.occurrence import Occurrence
from ..models.schedule import ScheduleDefinition
from ..models.schema_version import CURRENT_VERSION, VersionedData
from ..utils.file_utils import load_json, save_json
from .memory import InMemoryRepository


logger = logging.getLogger(__name__)


class JsonFileRepository(InMemoryRepository):
    """
    Repository persisted to one JSON document.

    File layout::

        {"schema_version": "1.0",
         "data": {"projects": [...], "occurrences": [...]}}

    Older bare ``{"projects", "tasks"}`` documents are upgraded on load.

    Examples:
        >>> repo = JsonFileRepository.open(Path("output/lessons.json"))
        >>> definitions = await repo.list_schedule_definitions()
    """

    def __init__(self, path: Path, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(clock=clock)
        self.path = Path(path)
        self._loading = False

    @classmethod
    def open(cls, path: Path, clock: Optional[Callable[[], datetime]] = None) -> 'JsonFileRepository':
        """
        Open (or start) a store file.

        Raises:
            PersistenceError: If the file exists but cannot be parsed
        """
        repo = cls(path, clock=clock)
        repo.reload()
        return repo

    def reload(self):
        """Replace the in-memory state with the file's content."""
        self._occurrences.clear()
        self._definitions.clear()

        if not self.path.exists():
            logger.info(f"Store file {self.path} does not exist yet; starting empty")
            return

        raw = load_json(self.path)
        if raw is None:
            raise PersistenceError(f"Cannot read lesson store {self.path}")

        try:
            versioned = VersionedData.from_dict(raw).upgraded()
            self._loading = True
            for record in versioned.data.get("projects", []):
                definition = ScheduleDefinition.from_dict(record)
                self._definitions[definition.project_id] = definition
            for record in versioned.data.get("occurrences", []):
                occurrence = Occurrence.from_dict(record)
                self._occurrences[occurrence.id] = occurrence
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed lesson store {self.path}: {e}") from e
        finally:
            self._loading = False

        logger.info(
            f"Loaded {len(self._definitions)} projects and "
            f"{len(self._occurrences)} occurrences from {self.path}"
        )

    def to_versioned(self) -> VersionedData:
        return VersionedData(
            schema_version=CURRENT_VERSION.value,
            data={
                "projects": [d.to_dict() for d in self._definitions.values()],
                "occurrences": [o.to_dict() for o in self.all_occurrences()],
            },
        )

    def _on_change(self):
        if self._loading:
            return
        if not save_json(self.to_versioned().to_dict(), self.path):
            raise PersistenceError(f"Cannot write lesson store {self.path}")
