"""
In-Memory Storage Implementation

Process-local storage for tests and single-process use.
Groups are copied on the way in and on the way out, so nothing a caller
does to a returned object can change stored state without a save.
"""

from typing import Optional
from uuid import UUID

from group_ledger.models.audit import AuditEvent
from group_ledger.models.group import Group, UserIdentity
from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    GroupStorageInterface,
    UserDirectoryInterface,
)


class InMemoryGroupStorage(GroupStorageInterface):
    """Groups kept in a dict keyed by id."""

    def __init__(self):
        self._groups: dict[UUID, Group] = {}

    async def load_group(self, group_id: UUID) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def save_group(self, group: Group) -> bool:
        self._groups[group.id] = group.model_copy(deep=True)
        return True

    async def list_groups_for_member(self, member_id: UUID) -> list[Group]:
        groups = [
            group.model_copy(deep=True)
            for group in self._groups.values()
            if group.has_member(member_id)
        ]
        groups.sort(key=lambda g: g.created_at)
        return groups


class InMemoryUserDirectory(UserDirectoryInterface):
    """Registered users keyed by lower-cased email."""

    def __init__(self, users: Optional[list[UserIdentity]] = None):
        self._users: dict[str, UserIdentity] = {}
        for user in users or []:
            self._users[user.email.strip().lower()] = user

    async def find_user_by_email(self, email: str) -> Optional[UserIdentity]:
        return self._users.get(email.strip().lower())

    async def register_user(self, user: UserIdentity) -> bool:
        key = user.email.strip().lower()
        if key in self._users:
            raise DuplicateError(f"User with this email already exists: {user.email}")
        self._users[key] = user
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
