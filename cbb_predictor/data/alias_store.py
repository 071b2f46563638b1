"""User-curated team alias mappings persisted as a single JSON file.

Format::

    {
      "_comment": "Maps team name variations to canonical team IDs",
      "missouri-state": "missouri-st",
      "uconn": "connecticut"
    }

Keys are normalized on write and on lookup (lowercase, whitespace collapsed
to ``-``). Last write wins; there is no merge or versioning.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

COMMENT_KEY = "_comment"
DEFAULT_COMMENT = "Maps team name variations to canonical team IDs"


def alias_key(raw_name: str) -> str:
    return re.sub(r"\s+", "-", raw_name.strip().lower())


class AliasStore:
    """Read-mostly alias table; the file is re-read on every call."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        data = read_json(self.path) or {}
        return {k: str(v) for k, v in data.items() if k != COMMENT_KEY and v}

    def _write(self, aliases: Dict[str, str]) -> None:
        payload: Dict[str, str] = {COMMENT_KEY: DEFAULT_COMMENT}
        payload.update(aliases)
        write_json_atomic(self.path, payload)

    def get(self, raw_name: str) -> Optional[str]:
        if not raw_name or not raw_name.strip():
            return None
        return self._read().get(alias_key(raw_name))

    def has(self, raw_name: str) -> bool:
        return self.get(raw_name) is not None

    def set(self, raw_name: str, team_id: str) -> str:
        """Map ``raw_name`` to ``team_id``; returns the stored key."""
        if not raw_name or not raw_name.strip():
            raise ValueError("alias source name is required")
        if not team_id or not team_id.strip():
            raise ValueError("alias target team id is required")
        key = alias_key(raw_name)
        aliases = self._read()
        aliases[key] = team_id.strip()
        self._write(aliases)
        logger.info("Added team alias: %s -> %s", key, team_id)
        return key

    def remove(self, raw_name: str) -> bool:
        """Delete an alias; ``False`` when there was nothing to delete."""
        key = alias_key(raw_name)
        aliases = self._read()
        if key not in aliases:
            return False
        del aliases[key]
        self._write(aliases)
        logger.info("Removed team alias: %s", key)
        return True

    def clear(self) -> None:
        self._write({})

    def all(self) -> Dict[str, str]:
        return self._read()

    def entries(self) -> List[Tuple[str, str]]:
        return sorted(self._read().items())

    def count(self) -> int:
        return len(self._read())
