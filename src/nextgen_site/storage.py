"""
Flat JSON file persistence.

Each collection is a single JSON document under the data directory. Reads
return the whole collection and writes replace it; concurrent writers
race and the last write wins.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

CONFERENCES = "conferences"
PAGES = "pages"
USERS = "users"
REFERRAL_CODES = "referral-codes"
ATTENDANCE = "attendance"
AI_SETTINGS = "ai-settings"

COLLECTIONS = (CONFERENCES, PAGES, USERS, REFERRAL_CODES, ATTENDANCE, AI_SETTINGS)


class JSONStore:
    """Reads and writes JSON collections under a data directory."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    def path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def _load(self, name: str) -> Optional[Any]:
        path = self.path_for(name)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable collection {path.name}: {e}")
            return None

    def read_list(self, name: str) -> list[dict]:
        """
        Read a list collection.

        Missing, empty and unparseable files read as an empty list.
        """
        data = self._load(name)
        if not isinstance(data, list):
            if data is not None:
                logger.warning(f"Collection {name} is not a list; treating as empty")
            return []
        return data

    def write_list(self, name: str, records: list[dict]) -> None:
        self._dump(name, records)

    def read_object(self, name: str) -> Optional[dict]:
        """Read an object document, or None when it does not exist."""
        data = self._load(name)
        return data if isinstance(data, dict) else None

    def write_object(self, name: str, data: dict) -> None:
        self._dump(name, data)

    def count(self, name: str) -> int:
        return len(self.read_list(name))

    def reset_collection(self, name: str, default: Any) -> None:
        """Overwrite a collection with a default value."""
        self._dump(name, default)
        logger.info(f"Reset collection {name}")

    def _dump(self, name: str, data: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.path_for(name).write_text(
            json.dumps(data, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
