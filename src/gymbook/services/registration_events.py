"""
Observer for registration changes.

Views that show course rosters or a member's bookings subscribe here,
optionally scoped to one course or one user, and are told when a
registration they care about changes.
"""
import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from pydantic import Field

from gymbook.schemas.base import BaseSchema
from gymbook.schemas.enums import RegistrationStatus

logger = logging.getLogger(__name__)


class RegistrationChanged(BaseSchema):
    course_id: UUID
    user_id: UUID
    status: RegistrationStatus
    previous_status: Optional[RegistrationStatus] = None
    occurred_at: datetime = Field(default_factory=datetime.utcnow)


Listener = Callable[[RegistrationChanged], None]


class _Subscription:
    def __init__(self, listener: Listener, course_id: Optional[UUID], user_id: Optional[UUID]):
        self.listener = listener
        self.course_id = course_id
        self.user_id = user_id

    def matches(self, event: RegistrationChanged) -> bool:
        if self.course_id is not None and self.course_id != event.course_id:
            return False
        if self.user_id is not None and self.user_id != event.user_id:
            return False
        return True


class RegistrationEventBus:
    def __init__(self):
        self._subscriptions: list[_Subscription] = []

    def subscribe(
        self,
        listener: Listener,
        *,
        course_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
    ) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        subscription = _Subscription(listener, course_id, user_id)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, event: RegistrationChanged) -> int:
        """Deliver an event to matching listeners; returns how many were called.

        A failing listener is logged and does not stop delivery to the others.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            try:
                subscription.listener(event)
            except Exception as e:
                logger.error(f"Registration listener {subscription.listener!r} failed: {e}", exc_info=True)
                continue
            delivered += 1
        return delivered

    def clear(self) -> None:
        self._subscriptions.clear()


registration_events = RegistrationEventBus()
