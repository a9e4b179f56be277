"""Abstract interface for session persistence."""
from abc import ABC, abstractmethod

from domain.models import Session


class HistoryStorePort(ABC):
    """
    Port for durable session history.
    Abstracts away the file system, a REST backend, etc.

    Every operation is keyed by session id and safe to retry:
    saving twice leaves one copy, deleting a missing session is not an error.
    """

    @abstractmethod
    async def list_sessions(self) -> list[Session]:
        """
        List stored sessions.

        Returns:
            Sessions sorted by timestamp, newest first
        """
        raise NotImplementedError

    @abstractmethod
    async def save(self, session: Session) -> str:
        """
        Create or overwrite a session (last write wins).

        Args:
            session: The Session to persist

        Returns:
            Storage path or ID
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """
        Delete a session by ID.

        Args:
            session_id: ID of the session

        Returns:
            True if deleted, False if not found
        """
        raise NotImplementedError

    @abstractmethod
    async def rename(self, session_id: str, new_query: str) -> bool:
        """
        Change the query (display name) of a stored session.

        Args:
            session_id: ID of the session
            new_query: New query text

        Returns:
            True if renamed, False if not found
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def storage_type(self) -> str:
        """Return the storage type (e.g., 'local', 'http', 'memory')."""
        raise NotImplementedError
