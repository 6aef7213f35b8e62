import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from vellume.core.clock import Clock
from vellume.models.usage_event import UsageEvent

logger = logging.getLogger(__name__)

QUOTA_WINDOW_MS = 7 * 24 * 60 * 60 * 1000  # 604,800,000


class UsageLedger:
    """
    Append-only access to usage_tracking. Events are never updated or deleted.
    """

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def window_start(self) -> int:
        """Inclusive lower bound of the trailing 7-day quota window, computed now."""
        return self.clock.now_ms() - QUOTA_WINDOW_MS

    def record_usage(self, user_id: str, action: str, timestamp: Optional[int] = None) -> UsageEvent:
        """
        Append one usage fact. Only call after the billable action has succeeded.
        """
        self.logger.info(f"record_usage: Entry - user: {user_id}, action: {action}")

        try:
            event = UsageEvent(
                id=str(uuid.uuid4()),
                user_id=user_id,
                action=action,
                created_at=timestamp if timestamp is not None else self.clock.now_ms(),
            )
            self.db.add(event)
            self.db.commit()

            self.logger.info(f"record_usage: Success - user: {user_id}, action: {action}, id: {event.id}")
            return event
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"record_usage: Failure - {e}")
            raise

    def count_recent_usage(self, user_id: str, actions: Iterable[str], window_start: Optional[int] = None) -> int:
        """
        Count the user's facts whose action is in `actions` and whose timestamp
        lies in [window_start, now]. Future-dated facts are not counted.
        """
        actions = list(actions)
        if not actions:
            return 0

        now = self.clock.now_ms()
        if window_start is None:
            window_start = now - QUOTA_WINDOW_MS

        count = self.db.query(func.count(UsageEvent.id)).filter(
            UsageEvent.user_id == user_id,
            UsageEvent.action.in_(actions),
            UsageEvent.created_at >= window_start,
            UsageEvent.created_at <= now,
        ).scalar()

        self.logger.info(f"count_recent_usage: user: {user_id}, actions: {sorted(actions)}, count: {count}")
        return count or 0
