import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from vellume.core.clock import Clock
from vellume.core.errors import ApiError
from vellume.models.entry import Entry

logger = logging.getLogger(__name__)


class EntryService:
    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def list_entries(self, user_id: str) -> list[Entry]:
        self.logger.info(f"list_entries: Entry - user: {user_id}")
        entries = self.db.query(Entry).filter(
            Entry.user_id == user_id
        ).order_by(Entry.created_at.desc()).all()
        self.logger.info(f"list_entries: Success - user: {user_id}, count: {len(entries)}")
        return entries

    def get_entry(self, user_id: str, entry_id: str) -> Entry:
        """Get an entry owned by the user; other users' entries are reported as missing"""
        entry = self.db.query(Entry).filter(
            Entry.id == entry_id,
            Entry.user_id == user_id
        ).first()
        if not entry:
            raise ApiError("ENTRY_NOT_FOUND", "Entry not found", 404)
        return entry

    def create_entry(self, user_id: str, content: str) -> Entry:
        self.logger.info(f"create_entry: Entry - user: {user_id}")

        try:
            now = self.clock.now_ms()
            entry = Entry(
                id=str(uuid.uuid4()),
                user_id=user_id,
                content=content,
                created_at=now,
                updated_at=now,
            )
            self.db.add(entry)
            self.db.commit()
            self.db.refresh(entry)

            self.logger.info(f"create_entry: Success - user: {user_id}, entry: {entry.id}")
            return entry
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"create_entry: Failure - {e}")
            raise

    def attach_image(self, user_id: str, entry_id: Optional[str], image_url: str) -> bool:
        """
        Point the user's entry at an image. Returns False when the entry does not
        exist or belongs to someone else; that is not an error for image routes.
        """
        if not entry_id:
            return False

        try:
            updated = self.db.query(Entry).filter(
                Entry.id == entry_id,
                Entry.user_id == user_id
            ).update({"image_url": image_url, "updated_at": self.clock.now_ms()})
            self.db.commit()

            self.logger.info(f"attach_image: user: {user_id}, entry: {entry_id}, updated: {updated}")
            return updated > 0
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"attach_image: Failure - {e}")
            raise
