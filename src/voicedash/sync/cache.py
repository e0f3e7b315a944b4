"""
Durable local cache for the poller's view.

The whole view is one JSON document, rewritten atomically on every update.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from voicedash.shared.logging import get_logger

logger = get_logger(__name__)


class CachedView(BaseModel):
    """Last good copy of the event feed."""

    events: list[dict[str, Any]] = Field(default_factory=list)
    # size of the whole feed when the view was taken, not len(events)
    last_seen_count: int = Field(default=0, ge=0)
    last_update: datetime | None = None
    connected: bool = False


class ViewCache:
    """JSON file holding a ``CachedView``."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CachedView | None:
        """Read the persisted view; a missing or corrupt file yields None."""
        if not self._path.exists():
            return None
        try:
            return CachedView.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(
                "Cached view unreadable, starting empty",
                extra={"path": str(self._path), "error": str(e)},
            )
            return None

    def save(self, view: CachedView) -> None:
        """Write the view, replacing the previous file in one step."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(view.model_dump_json(), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
