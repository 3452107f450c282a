"""Domain primitives shared by every module.

Entities are plain Python classes; events are frozen pydantic models.

Architecture:
- Entity: mutable objects with identity and timestamps
- AggregateRoot: entities that collect domain events
- DomainEvent: something that happened that the domain cares about
"""

from abc import ABC
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from userservice.core.errors import ValidationError


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list | tuple):
        return [_serialize(item) for item in value]
    return value


# =====================================================================================
# ENTITY BASE CLASS
# =====================================================================================


class Entity(ABC):
    """
    Base entity with identity and lifecycle timestamps.

    Entities are equal when they share type and id. ``created_at`` and
    ``updated_at`` may be supplied when rehydrating from storage.

    Usage Example:
        class Device(Entity):
            def __init__(self, name: str, entity_id: UUID | None = None):
                super().__init__(entity_id)
                self.name = name
    """

    def __init__(
        self,
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = entity_id or uuid4()
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at

        self._validate_entity()

    def _validate_entity(self) -> None:
        """
        Validate entity state. Override in subclasses for specific validation.

        Raises:
            ValidationError: If entity is in invalid state
        """
        if not isinstance(self.id, UUID):
            raise ValidationError("Entity ID must be a UUID", field="id", rule="type")

        if not isinstance(self.created_at, datetime):
            raise ValidationError(
                "Entity created_at must be a datetime", field="created_at", rule="type"
            )

    def mark_modified(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = utc_now()

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.id))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id}, created_at={self.created_at})"

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.id})"

    def to_dict(self) -> dict[str, Any]:
        """
        Convert entity to dictionary.

        Private attributes (leading underscore) are never included.
        """
        return {
            key: _serialize(value)
            for key, value in self.__dict__.items()
            if not key.startswith("_")
        }


# =====================================================================================
# AGGREGATE ROOT CLASS
# =====================================================================================


class AggregateRoot(Entity):
    """
    Aggregate root with domain event management.

    Events are collected while the aggregate is mutated and drained by the
    application layer after persistence with ``clear_events()``.
    """

    def __init__(
        self,
        entity_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self._events: list[DomainEvent] = []
        super().__init__(entity_id, created_at, updated_at)

    def add_event(self, event: "DomainEvent") -> None:
        """
        Add a domain event to the aggregate.

        Raises:
            ValidationError: If event is not a DomainEvent
        """
        if not isinstance(event, DomainEvent):
            raise ValidationError("Event must be a DomainEvent instance", field="event", rule="type")
        self._events.append(event)

    def clear_events(self) -> list["DomainEvent"]:
        """Return and clear all pending domain events."""
        events = self._events.copy()
        self._events.clear()
        return events

    def get_events(self) -> list["DomainEvent"]:
        """Get a copy of pending domain events without clearing them."""
        return self._events.copy()

    def has_events(self) -> bool:
        return bool(self._events)


# =====================================================================================
# DOMAIN EVENT BASE CLASS
# =====================================================================================


class DomainEvent(BaseModel):
    """
    Base domain event class.

    Domain events represent something that happened in the domain
    that domain experts care about. Subclasses declare their payload as
    annotated fields; instances are immutable.
    """

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_at: datetime = Field(default_factory=utc_now)

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def get_aggregate_id(self) -> str:
        raise NotImplementedError("Subclasses must implement get_aggregate_id")

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["event_type"] = self.event_type
        return data

    def __str__(self) -> str:
        return f"{self.event_type}({self.get_aggregate_id()})"


EntityT = TypeVar("EntityT", bound=Entity)
AggregateT = TypeVar("AggregateT", bound=AggregateRoot)

__all__ = [
    "AggregateRoot",
    "AggregateT",
    "DomainEvent",
    "Entity",
    "EntityT",
    "utc_now",
]
