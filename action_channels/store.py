"""
Persistence for channel records.

The whole collection is loaded and saved as one document. Writers must hold
``store.write_lock`` around load-check-append-save; readers never lock because
records are immutable once saved.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Union

from pydantic import ValidationError

from action_channels.errors import StorageReadError, StorageWriteError
from action_channels.routing import derive_route
from action_channels.schemas import ChannelRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    def __init__(self) -> None:
        self.write_lock = threading.Lock()

    @abstractmethod
    def load(self) -> List[ChannelRecord]:
        """Return every persisted record in insertion order."""

    @abstractmethod
    def save(self, records: Iterable[ChannelRecord]) -> None:
        """Replace the persisted collection."""


class InMemoryStore(RecordStore):
    def __init__(self, records: Iterable[ChannelRecord] = ()) -> None:
        super().__init__()
        self._records = list(records)

    def load(self) -> List[ChannelRecord]:
        return list(self._records)

    def save(self, records: Iterable[ChannelRecord]) -> None:
        self._records = list(records)


class JsonFileStore(RecordStore):
    """
    Stores records as ``{"channels": [...]}`` in a single JSON file.

    A missing file reads as an empty collection. The historical
    ``{"blinks": [...]}`` layout is accepted on read. Saves go to a temp file
    in the same directory and are swapped in with ``os.replace``.
    """

    def __init__(self, path: Union[str, Path], route_prefix: str = "/channels") -> None:
        super().__init__()
        self.path = Path(path)
        self.route_prefix = route_prefix

    def _from_legacy(self, item):
        # Old documents keyed records under /api/<slug>; re-key to the current prefix
        if isinstance(item, dict) and isinstance(item.get("channelName"), str):
            item = {**item, "route": derive_route(item["channelName"], self.route_prefix)}
        return item

    def load(self) -> List[ChannelRecord]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Failed to read %s: %s", self.path, e)
            raise StorageReadError() from e

        try:
            document = json.loads(raw)
            if isinstance(document, dict) and "channels" not in document and "blinks" in document:
                items = document["blinks"]
                if isinstance(items, list):
                    items = [self._from_legacy(item) for item in items]
            elif isinstance(document, dict):
                items = document.get("channels", [])
            else:
                items = document
            if not isinstance(items, list):
                raise ValueError("record collection is not a list")
            return [ChannelRecord.model_validate(item) for item in items]
        except (ValueError, ValidationError) as e:
            logger.error("Channel document %s is malformed: %s", self.path, e)
            raise StorageReadError() from e

    def save(self, records: Iterable[ChannelRecord]) -> None:
        document = {
            "channels": [r.model_dump(mode="json", by_alias=True) for r in records]
        }
        payload = json.dumps(document, indent=2, ensure_ascii=False)

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            logger.error("Failed to write %s: %s", self.path, e)
            raise StorageWriteError() from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_path)
