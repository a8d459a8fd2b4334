"""
JSON file storage for repository items and workbooks.

Each store holds one whole collection in one file and exposes the same
two-call contract: load_all() returns the collection and save_all() replaces
it. Items are stored as an object keyed by item key, workbooks as a list.
"""

from pathlib import Path
from typing import Any, Union
import json
import logging

from storymode.data_models import RepositoryItem, Workbook

logger = logging.getLogger(__name__)


class JsonCollectionStore:
    """A JSON document holding one collection; a missing file is an empty one."""

    empty: Any = None

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    def _read(self) -> Any:
        if not self.file_path.exists():
            return self.empty
        with open(self.file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: Any) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


class RepositoryItemStore(JsonCollectionStore):
    """Repository items keyed by item key."""

    empty: dict = {}

    def load_all(self) -> dict[str, RepositoryItem]:
        """
        Load every item.

        Raises:
            ValueError: If the file does not hold an object of items
        """
        data = self._read()
        if not isinstance(data, dict):
            raise ValueError(f"{self.file_path} does not contain a repository item mapping")
        items = {key: RepositoryItem.from_dict(entry) for key, entry in data.items()}
        logger.debug(f"Loaded {len(items)} repository items from {self.file_path}")
        return items

    def save_all(self, items: dict[str, RepositoryItem]) -> None:
        self._write({key: item.to_dict() for key, item in items.items()})
        logger.debug(f"Saved {len(items)} repository items to {self.file_path}")


class WorkbookStore(JsonCollectionStore):
    """Workbooks as an ordered list."""

    empty: list = []

    def load_all(self) -> list[Workbook]:
        """
        Load every workbook.

        Raises:
            ValueError: If the file does not hold a list of workbooks
        """
        data = self._read()
        if not isinstance(data, list):
            raise ValueError(f"{self.file_path} does not contain a workbook list")
        return [Workbook.from_dict(entry) for entry in data]

    def save_all(self, workbooks: list[Workbook]) -> None:
        self._write([workbook.to_dict() for workbook in workbooks])
        logger.debug(f"Saved {len(workbooks)} workbooks to {self.file_path}")
