"""File-backed retry queue for events that could not be delivered."""

import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional, Union

import orjson
import structlog
from pydantic import ValidationError

from ..errors import PersistenceFailure
from ..event.model import Event

logger = structlog.get_logger(__name__)

SUFFIX = ".json"
QUEUE_DIRNAME = "_sentry"

_EVENT_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class RetryQueue:
    """
    One JSON file per pending event, named after the event id.

    Writes replace the whole file atomically and deletes tolerate files
    that are already gone, so concurrent request handlers and the
    maintenance task need no locking.
    """

    def __init__(self, directory: Union[str, Path]):
        """
        Initialize retry queue.

        Args:
            directory: Directory holding the pending event files
        """
        self.directory = Path(directory)

    @classmethod
    def in_cache_dir(cls, cache_dir: Union[str, Path]) -> "RetryQueue":
        return cls(Path(cache_dir) / QUEUE_DIRNAME)

    def path_for(self, event_id: str) -> Optional[Path]:
        """File path of an event, or None for ids that are not valid file names."""
        if not event_id or not _EVENT_ID.match(event_id):
            return None
        return self.directory / f"{event_id}{SUFFIX}"

    def persist(self, event: Event) -> Path:
        """
        Write an event to the queue, replacing an earlier copy.

        Raises:
            PersistenceFailure: If the event cannot be written
        """
        path = self.path_for(event.event_id)
        if path is None:
            raise PersistenceFailure(f"Invalid event id: {event.event_id!r}")

        try:
            payload = event.serialize()
        except (ValueError, TypeError) as e:
            logger.error("pending_event_not_serializable", event_id=event.event_id, error=str(e))
            raise PersistenceFailure(f"Could not serialize event {event.event_id}: {e}") from e

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error("pending_event_not_saved", event_id=event.event_id, error=str(e))
            raise PersistenceFailure(f"Could not save event {event.event_id}: {e}") from e

        logger.info("pending_event_saved", event_id=event.event_id, path=str(path))
        return path

    def list_pending(self) -> List[str]:
        """Ids of all queued events, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob(f"*{SUFFIX}") if p.is_file())

    def load(self, event_id: str) -> Optional[Event]:
        """
        Load a queued event.

        Returns:
            The event, or None if it is gone or unreadable
        """
        path = self.path_for(event_id)
        if path is None:
            return None

        try:
            payload = path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            return Event.deserialize(payload)
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.error("pending_event_unreadable", event_id=event_id, error=str(e))
            return None

    def delete(self, event_id: str) -> bool:
        """
        Remove a queued event.

        Returns:
            True if a file was removed, False if there was none
        """
        path = self.path_for(event_id)
        if path is None:
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            return False

        logger.debug("pending_event_deleted", event_id=event_id)
        return True

    def __len__(self) -> int:
        return len(self.list_pending())
