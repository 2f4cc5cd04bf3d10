from typing import List, Optional
from pydantic import BaseModel


class RecentVisitor(BaseModel):
    id: str
    full_name: str
    company_name: Optional[str] = None
    host_employee_name: str
    check_in_time: Optional[str] = None
    status: str


class DashboardStats(BaseModel):
    today_visitors: int
    checked_in: int
    pending_approvals: int
    active_pre_approvals: int
    recent_visitors: List[RecentVisitor]
    scope: str  # "all" для админа и охраны, "own" для сотрудника
