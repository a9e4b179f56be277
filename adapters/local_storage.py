"""Local file history store implementation."""
import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from ports.history import HistoryStorePort
from domain.models import Session
from domain.exceptions import AdapterError

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalHistoryStore(HistoryStorePort):
    """
    Adapter for local file system storage.
    Stores each session as `<session id>.json`.
    """

    def __init__(self, base_path: str = "data/historyData"):
        """
        Initialize the local history store.

        Args:
            base_path: Directory holding one JSON file per session
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    @property
    def storage_type(self) -> str:
        return "local"

    def _path_for(self, session_id: str) -> Path:
        # Session ids become file names; refuse anything that could escape the directory.
        if not session_id or not _SAFE_ID.match(session_id) or session_id in (".", ".."):
            raise ValueError(f"Unsafe session id: {session_id!r}")
        return self.base_path / f"{session_id}.json"

    def _write_json(self, filepath: Path, data: dict) -> None:
        """Write to a sibling temp file, then swap it in; a failed write leaves the old file."""
        tmp_path = filepath.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp_path.replace(filepath)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

    async def list_sessions(self) -> list[Session]:
        """List stored sessions, newest first. Unreadable files are skipped."""
        try:
            sessions = []
            for filepath in self.base_path.glob("*.json"):
                try:
                    with open(filepath, "r", encoding="utf-8") as f:
                        sessions.append(Session.model_validate(json.load(f)))
                except (json.JSONDecodeError, PydanticValidationError) as e:
                    logger.warning("Skipping unreadable session file %s: %s", filepath, e)

            sessions.sort(key=lambda s: s.timestamp, reverse=True)
            return sessions

        except OSError as e:
            raise AdapterError("LocalHistoryStore", "list_sessions", e)

    async def save(self, session: Session) -> str:
        """Persist the session as JSON (overwrites)."""
        try:
            filepath = self._path_for(session.id)
            self._write_json(filepath, session.to_json_dict())
            return str(filepath)

        except (OSError, ValueError) as e:
            raise AdapterError("LocalHistoryStore", "save", e)

    async def delete(self, session_id: str) -> bool:
        """Delete a session by ID."""
        try:
            filepath = self._path_for(session_id)
            if not filepath.exists():
                return False
            filepath.unlink()
            return True

        except (OSError, ValueError) as e:
            raise AdapterError("LocalHistoryStore", "delete", e)

    async def rename(self, session_id: str, new_query: str) -> bool:
        """Update the stored session's query field."""
        try:
            filepath = self._path_for(session_id)
            if not filepath.exists():
                return False

            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            data["query"] = new_query
            self._write_json(filepath, data)
            return True

        except (OSError, ValueError) as e:
            raise AdapterError("LocalHistoryStore", "rename", e)
