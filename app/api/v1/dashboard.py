import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.database import get_db
from app.models.pre_approval import PreApproval
from app.models.user import User
from app.models.visitor import Visitor
from app.schemas.dashboard import DashboardStats, RecentVisitor
from app.services.auth import get_now, parse_timestamp
from app.services.pre_approvals import expire_overdue

router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_VISITORS_LIMIT = 5


@router.get("/dashboard/stats", response_model=DashboardStats)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("view_dashboard")),
):
    """
    Сводка для главного экрана.
    Сотрудник видит цифры только по своим посетителям и приглашениям
    """
    expire_overdue(db)

    own_scope = current_user.role == "employee"
    visitors_query = db.query(Visitor)
    pre_approvals_query = db.query(PreApproval).filter(PreApproval.status == "active")
    if own_scope:
        visitors_query = visitors_query.filter(Visitor.host_employee_id == current_user.id)
        pre_approvals_query = pre_approvals_query.filter(PreApproval.host_employee_id == current_user.id)

    visitors = visitors_query.order_by(Visitor.created_at.desc()).all()

    # "Сегодня" - по локальной дате приложения
    now = get_now()
    today = now.date()
    today_visitors = [
        visitor for visitor in visitors
        if visitor.check_in_time
        and parse_timestamp(visitor.check_in_time).astimezone(now.tzinfo).date() == today
    ]

    return DashboardStats(
        today_visitors=len(today_visitors),
        checked_in=sum(1 for visitor in visitors if visitor.status == "checked-in"),
        pending_approvals=sum(1 for visitor in visitors if visitor.status == "pending"),
        active_pre_approvals=pre_approvals_query.count(),
        recent_visitors=[
            RecentVisitor(
                id=visitor.id,
                full_name=visitor.full_name,
                company_name=visitor.company_name,
                host_employee_name=visitor.host_employee_name,
                check_in_time=visitor.check_in_time,
                status=visitor.status,
            )
            for visitor in visitors[:RECENT_VISITORS_LIMIT]
        ],
        scope="own" if own_scope else "all",
    )
