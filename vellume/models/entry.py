from sqlalchemy import Column, String, BigInteger, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from vellume.core.database import Base


class Entry(Base):
    __tablename__ = "entry"
    __table_args__ = (
        Index("idx_entry_user", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    # Relationships
    user = relationship("User", back_populates="entries")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'content': self.content,
            'image_url': self.image_url,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
