"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger independent of any storage engine
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

The interface is intentionally small: a group is loaded and saved whole,
so a save is the single point where a mutation becomes visible.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from group_ledger.models.audit import AuditEvent
from group_ledger.models.group import Group, UserIdentity


class GroupStorageInterface(ABC):
    """
    Abstract interface for group storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load_group(self, group_id: UUID) -> Optional[Group]:
        """
        Retrieve a group by its ID.

        Args:
            group_id: The group's unique identifier

        Returns:
            The group if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        """
        Insert or replace a group.

        Args:
            group: The full group, history included

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_groups_for_member(self, member_id: UUID) -> list[Group]:
        """
        List every group that has the member on its roster.

        Args:
            member_id: Member (or registered user) id

        Returns:
            Matching groups, oldest first
        """
        pass


class UserDirectoryInterface(ABC):
    """
    Abstract interface for looking up registered users.

    The ledger only needs this to decide whether an invited address
    becomes a registered or a pending member.
    """

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[UserIdentity]:
        """
        Find a registered user by email (case-insensitive).

        Returns:
            The user if registered, None otherwise
        """
        pass

    @abstractmethod
    async def register_user(self, user: UserIdentity) -> bool:
        """
        Add a user to the directory.

        Raises:
            DuplicateError: If the email is already registered
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one request).

        Args:
            correlation_id: The correlation identifier

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'group', 'expense')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
