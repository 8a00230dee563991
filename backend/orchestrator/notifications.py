"""
Job change notifications.

One-way fan-out of "a job changed" events to subscribers owned outside
this package (for example a server-sent-events bridge to the dashboard).

The registry is an explicit object owned by the service instance and
injected where needed. There is no module-level subscriber state.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List

from pydantic import BaseModel, ConfigDict

from .jobs.models import JobRecord

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ARCHIVED = "archived"  # Removed from the active queue


class JobChangedEvent(BaseModel):
    """Payload delivered to subscribers after a committed change."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ChangeKind
    job: JobRecord


JobChangedCallback = Callable[[JobChangedEvent], None]


class ChangeNotifier:
    """
    Subscriber registry for job change events.

    Subscribers that raise are logged and dropped, like a closed stream.
    A failing subscriber never fails the mutation that triggered it.
    """

    def __init__(self):
        self._subscribers: List[JobChangedCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: JobChangedCallback) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the subscription (safe to call twice)
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def on_job_changed(self, job: JobRecord, kind: ChangeKind = ChangeKind.UPDATED) -> None:
        """Deliver a change event to every current subscriber."""
        event = JobChangedEvent(kind=kind, job=job)
        with self._lock:
            subscribers = list(self._subscribers)

        dead: List[JobChangedCallback] = []
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning(
                    "Dropping job change subscriber %r after error on job %s: %s",
                    callback, job.id, e,
                )
                dead.append(callback)

        if dead:
            with self._lock:
                self._subscribers = [cb for cb in self._subscribers if cb not in dead]
