import uuid
from sqlalchemy import Column, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(Text, nullable=False)
    expires_at = Column(Text, nullable=False)  # ISO timestamp
    created_at = Column(Text, nullable=False)
    revoked_at = Column(Text, nullable=True)  # выставляется при logout и ротации

    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked_at={self.revoked_at})>"
