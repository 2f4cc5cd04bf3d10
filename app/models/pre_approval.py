import uuid
from sqlalchemy import Column, Text, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from app.database import Base

PRE_APPROVAL_STATUSES = ("active", "expired", "used")
QR_SENT_STATUSES = ("not-sent", "sending", "sent", "failed")


class PreApproval(Base):
    __tablename__ = "pre_approvals"

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    visitor_name = Column(Text, nullable=False)
    visitor_email = Column(Text, nullable=False)
    visitor_phone = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False)
    scheduled_date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)  # HH:MM, локальное время без зоны
    end_time = Column(Text, nullable=False)  # HH:MM

    host_employee_id = Column(Text, ForeignKey("users.id"), nullable=False, index=True)
    host_employee_name = Column(Text, nullable=False)

    status = Column(Text, nullable=False, default="active")  # active|expired|used
    qr_code = Column(Text, nullable=False)  # метка QR-PRE-XXXXXX, не криптография

    # Состояние отправки письма (не путать со status)
    qr_sent = Column(Integer, nullable=False, default=0)
    qr_sent_at = Column(Text, nullable=True)  # ISO timestamp, только при qr_sent_status == "sent"
    qr_sent_status = Column(Text, nullable=False, default="not-sent")  # not-sent|sending|sent|failed
    qr_message_id = Column(Text, nullable=True)
    qr_last_error = Column(Text, nullable=True)

    valid_until = Column(Text, nullable=False)  # ISO timestamp, конец дня визита
    used_at = Column(Text, nullable=True)
    used_visitor_id = Column(Text, nullable=True)

    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=True)

    host = relationship("User", foreign_keys=[host_employee_id], back_populates="pre_approvals")

    __table_args__ = (
        Index("idx_pre_approvals_created_at", "created_at"),
        Index("idx_pre_approvals_status", "status"),
    )

    def __repr__(self):
        return (
            f"<PreApproval(id={self.id}, visitor_name={self.visitor_name}, "
            f"status={self.status}, qr_sent_status={self.qr_sent_status})>"
        )
