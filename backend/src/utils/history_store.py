"""Durable storage for the client-side search history."""

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

HISTORY_KEY = "digest-search-history"
DEFAULT_HISTORY_PATH = Path.home() / ".digest" / f"{HISTORY_KEY}.json"


class HistoryStore(Protocol):
    """Read-at-init, write-on-mutation persistence for search history."""

    def load(self) -> list[str]: ...

    def save(self, history: list[str]) -> None: ...


def parse_history(raw: str | None) -> list[str]:
    """Decode a stored history payload.

    Corrupt or unexpected payloads are treated as "no history".
    """
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ignoring corrupt search history payload")
        return []
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, str)]


class JsonFileHistoryStore:
    """Stores the history as a JSON array in a single file."""

    def __init__(self, path: Path | str = DEFAULT_HISTORY_PATH):
        self.path = Path(path)

    def load(self) -> list[str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.debug("Could not read history file %s: %s", self.path, e)
            return []
        return parse_history(raw)

    def save(self, history: list[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(history), encoding="utf-8")


class InMemoryHistoryStore:
    """Keeps the serialized history in memory, mirroring a key/value store."""

    def __init__(self, raw: str | None = None):
        self.raw = raw

    def load(self) -> list[str]:
        return parse_history(self.raw)

    def save(self, history: list[str]) -> None:
        self.raw = json.dumps(history)
