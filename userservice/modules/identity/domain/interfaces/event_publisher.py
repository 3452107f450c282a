"""Outbound port for domain events raised by identity aggregates."""

from typing import Protocol

from userservice.core.domain.base import DomainEvent


class IEventPublisher(Protocol):
    """Receives events after the state change that raised them is persisted."""

    def publish(self, event: DomainEvent) -> None: ...
