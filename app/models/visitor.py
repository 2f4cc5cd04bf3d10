import uuid
from sqlalchemy import Column, Text, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from app.database import Base

VISITOR_STATUSES = ("pending", "approved", "rejected", "checked-in", "checked-out")


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(Text, nullable=False)
    contact_number = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False)
    company_name = Column(Text, nullable=True)

    host_employee_id = Column(Text, ForeignKey("users.id"), nullable=True, index=True)
    host_employee_name = Column(Text, nullable=False)
    host_department = Column(Text, nullable=False)

    photo_url = Column(Text, nullable=True)  # data URL снимка с камеры
    badge_number = Column(Text, nullable=False)  # VIS-XXXXXX
    qr_code = Column(Text, nullable=False)

    status = Column(Text, nullable=False, default="pending")
    check_in_time = Column(Text, nullable=True)  # ISO timestamp
    check_out_time = Column(Text, nullable=True)
    approval_time = Column(Text, nullable=True)
    approved_by = Column(Text, ForeignKey("users.id"), nullable=True)

    pre_approved = Column(Integer, nullable=False, default=0)
    pre_approval_id = Column(Text, ForeignKey("pre_approvals.id"), nullable=True)

    registered_by = Column(Text, ForeignKey("users.id"), nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=True)

    host = relationship("User", foreign_keys=[host_employee_id], back_populates="hosted_visitors")
    approver = relationship("User", foreign_keys=[approved_by])
    registrar = relationship("User", foreign_keys=[registered_by])
    pre_approval = relationship("PreApproval", foreign_keys=[pre_approval_id])

    __table_args__ = (
        Index("idx_visitors_status", "status"),
        Index("idx_visitors_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Visitor(id={self.id}, full_name={self.full_name}, status={self.status})>"
