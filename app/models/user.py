import uuid
from sqlalchemy import Column, Text, Integer
from sqlalchemy.orm import relationship

from app.database import Base

USER_ROLES = ("admin", "employee", "guard")


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(Text, unique=True, nullable=False, index=True)  # используется как логин
    name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default="employee")  # admin|employee|guard
    department = Column(Text, nullable=True)
    password_hash = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, default=1)
    theme = Column(Text, nullable=False, default="light")  # light|dark
    created_at = Column(Text, nullable=False)
    last_login = Column(Text, nullable=True)

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")
    pre_approvals = relationship("PreApproval", foreign_keys="PreApproval.host_employee_id", back_populates="host")
    hosted_visitors = relationship("Visitor", foreign_keys="Visitor.host_employee_id", back_populates="host")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
