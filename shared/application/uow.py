"""
Unit of Work Pattern

Manages database transactions and ensures that domain events
are published only after successful transaction commit.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """
    Abstract Unit of Work pattern

    With ``defer_publish=True`` committed events are kept in
    ``committed_events`` until ``publish_committed()`` is called, so the
    caller can release its locks before any handler runs.
    """

    def __init__(self, defer_publish: bool = False):
        self.defer_publish = defer_publish
        self.committed_events: List[DomainEvent] = []
        self._events: List[DomainEvent] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""

    @abstractmethod
    def _schedule_publish(self, events: List[DomainEvent]):
        """Arrange for events to reach the message bus once durable"""

    def collect_events(self, aggregate):
        """
        Collect events from aggregate root

        Extracts all domain events from the aggregate and
        clears them from the aggregate.
        """
        new_events = aggregate.events
        if new_events:
            self._events.extend(new_events)
            aggregate.clear_events()
            logger.debug(
                f"Collected {len(new_events)} events from "
                f"{aggregate.__class__.__name__} (ID: {aggregate.id})"
            )

    def _finish_commit(self):
        events = self._events.copy()
        self._events.clear()
        if self.defer_publish:
            self.committed_events = events
        elif events:
            self._schedule_publish(events)

    def publish_committed(self):
        events, self.committed_events = self.committed_events, []
        if events:
            self._schedule_publish(events)

    @staticmethod
    def _publish_events(events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")
        message_bus.publish_events(events)


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = booking_repo.get(booking_id, lock=True)
            lifecycle.apply(booking, ...)
            uow.collect_events(booking)
            booking_repo.save(booking)
            # Transaction commits here
        # Events are published after commit
    """

    def __init__(self, defer_publish: bool = False):
        super().__init__(defer_publish)
        self._transaction = None

    def __enter__(self):
        self._transaction = transaction.atomic()
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._transaction:
                self._transaction.__exit__(exc_type, exc_val, exc_tb)

    def commit(self):
        logger.debug(f"Committing transaction with {len(self._events)} events")
        self._finish_commit()

    def rollback(self):
        logger.warning(f"Rolling back transaction, discarding {len(self._events)} events")
        self._events.clear()

    def _schedule_publish(self, events: List[DomainEvent]):
        # on_commit runs immediately outside atomic blocks, otherwise after the outermost commit
        transaction.on_commit(lambda: self._publish_events(events))
