import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_user_permissions, require_permission
from app.database import get_db
from app.models.user import User
from app.models.visitor import Visitor
from app.schemas.visitor import (
    VisitorCreate,
    VisitorResponse,
    VisitorStatus,
    VisitorsListResponse,
)
from app.services.auth import get_current_timestamp, parse_timestamp
from app.services.notifications import send_notifications_for_event
from app.services.tokens import generate_badge_number, generate_visitor_qr_code

router = APIRouter()
logger = logging.getLogger(__name__)

# Разрешенные переходы статуса посетителя: действие -> (из статуса, в статус)
STATUS_TRANSITIONS = {
    "approve": ("pending", "approved"),
    "reject": ("pending", "rejected"),
    "check-in": ("approved", "checked-in"),
    "check-out": ("checked-in", "checked-out"),
}

TRANSITION_EVENTS = {
    "approve": "visitor_approved",
    "reject": "visitor_rejected",
    "check-in": "visitor_checked_in",
    "check-out": "visitor_checked_out",
}


def build_visitor_response(visitor: Visitor) -> VisitorResponse:
    return VisitorResponse.model_validate(visitor)


def get_visitor_or_404(db: Session, visitor_id: str) -> Visitor:
    visitor = db.query(Visitor).filter(Visitor.id == visitor_id).first()
    if not visitor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Посетитель не найден",
        )
    return visitor


def ensure_host_or_admin(visitor: Visitor, user: User) -> None:
    """Сотрудник может решать только по своим посетителям"""
    if not user.is_admin and visitor.host_employee_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Посетитель приглашен другим сотрудником",
        )


def apply_transition(
    db: Session,
    visitor: Visitor,
    action: str,
    current_user: User,
    background_tasks: BackgroundTasks,
) -> VisitorResponse:
    from_status, to_status = STATUS_TRANSITIONS[action]
    if visitor.status != from_status:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Действие недоступно для посетителя в статусе '{visitor.status}'",
        )

    timestamp = get_current_timestamp()
    visitor.status = to_status
    visitor.updated_at = timestamp
    if action in ("approve", "reject"):
        visitor.approval_time = timestamp
        visitor.approved_by = current_user.id
    elif action == "check-in":
        visitor.check_in_time = timestamp
    elif action == "check-out":
        visitor.check_out_time = timestamp

    db.commit()
    db.refresh(visitor)

    logger.info(
        f"Посетитель {visitor.id} ('{visitor.full_name}'): {from_status} -> {to_status}, user='{current_user.email}'"
    )

    response = build_visitor_response(visitor)
    background_tasks.add_task(
        send_notifications_for_event,
        TRANSITION_EVENTS[action],
        {"actor": current_user.name, "visitor": response.model_dump()},
    )
    return response


@router.post("/visitors", response_model=VisitorResponse, status_code=status.HTTP_201_CREATED)
def register_visitor(
    visitor_data: VisitorCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("register_visitor")),
):
    """Зарегистрировать посетителя на входе; визит ждет одобрения принимающего"""
    host = db.query(User).filter(
        User.id == visitor_data.host_employee_id,
        User.is_active == 1,
        User.role.in_(["employee", "admin"]),
    ).first()
    if not host:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Принимающий сотрудник не найден",
        )

    timestamp = get_current_timestamp()
    visitor = Visitor(
        full_name=visitor_data.full_name,
        contact_number=visitor_data.contact_number,
        email=visitor_data.email,
        purpose=visitor_data.purpose,
        company_name=visitor_data.company_name or None,
        host_employee_id=host.id,
        host_employee_name=host.name,
        host_department=visitor_data.host_department or host.department or "",
        photo_url=visitor_data.photo_url,
        badge_number=generate_badge_number(),
        qr_code=generate_visitor_qr_code(),
        status="pending",
        check_in_time=timestamp,
        pre_approved=0,
        registered_by=current_user.id,
        created_at=timestamp,
    )
    db.add(visitor)
    db.commit()
    db.refresh(visitor)

    logger.info(
        f"Зарегистрирован посетитель: ID={visitor.id}, name='{visitor.full_name}', "
        f"host='{host.email}', user='{current_user.email}'"
    )

    response = build_visitor_response(visitor)
    background_tasks.add_task(
        send_notifications_for_event,
        "visitor_registered",
        {"actor": current_user.name, "visitor": response.model_dump()},
    )
    return response


@router.get("/visitors", response_model=VisitorsListResponse)
def get_visitors(
    search: Optional[str] = Query(None, description="Поиск по имени, email, компании, принимающему, бейджу"),
    status_filter: Optional[VisitorStatus] = Query(None, alias="status"),
    visit_date: Optional[date] = Query(None, alias="date", description="Дата визита YYYY-MM-DD"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("view_all_visitors")),
):
    """Журнал всех посетителей (только для админов)"""
    query = db.query(Visitor)

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Visitor.full_name.ilike(pattern),
                Visitor.email.ilike(pattern),
                Visitor.company_name.ilike(pattern),
                Visitor.host_employee_name.ilike(pattern),
                Visitor.badge_number.ilike(pattern),
            )
        )

    if status_filter:
        query = query.filter(Visitor.status == status_filter)

    visitors = query.order_by(Visitor.created_at.desc()).all()

    # Дата визита сравнивается в локальном времени записи, поэтому фильтр на Python
    if visit_date:
        visitors = [
            visitor for visitor in visitors
            if visitor.check_in_time and parse_timestamp(visitor.check_in_time).date() == visit_date
        ]

    return VisitorsListResponse(
        visitors=[build_visitor_response(visitor) for visitor in visitors],
        total=len(visitors),
    )


@router.get("/visitors/pending", response_model=VisitorsListResponse)
def get_pending_visitors(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("approve_visitor")),
):
    """Посетители, ожидающие одобрения. Сотрудник видит только своих"""
    query = db.query(Visitor).filter(Visitor.status == "pending")
    if not current_user.is_admin:
        query = query.filter(Visitor.host_employee_id == current_user.id)

    visitors = query.order_by(Visitor.created_at.desc()).all()
    return VisitorsListResponse(
        visitors=[build_visitor_response(visitor) for visitor in visitors],
        total=len(visitors),
    )


@router.get("/visitors/{visitor_id}", response_model=VisitorResponse)
def get_visitor(
    visitor_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Карточка посетителя: админ, охрана или принимающий сотрудник"""
    visitor = get_visitor_or_404(db, visitor_id)

    permissions = get_user_permissions(current_user)
    if "view_all_visitors" not in permissions and "check_in_visitor" not in permissions:
        ensure_host_or_admin(visitor, current_user)

    return build_visitor_response(visitor)


@router.patch("/visitors/{visitor_id}/approve", response_model=VisitorResponse)
def approve_visitor(
    visitor_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("approve_visitor")),
):
    """Одобрить визит"""
    visitor = get_visitor_or_404(db, visitor_id)
    ensure_host_or_admin(visitor, current_user)
    return apply_transition(db, visitor, "approve", current_user, background_tasks)


@router.patch("/visitors/{visitor_id}/reject", response_model=VisitorResponse)
def reject_visitor(
    visitor_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("approve_visitor")),
):
    """Отклонить визит"""
    visitor = get_visitor_or_404(db, visitor_id)
    ensure_host_or_admin(visitor, current_user)
    return apply_transition(db, visitor, "reject", current_user, background_tasks)


@router.patch("/visitors/{visitor_id}/check-in", response_model=VisitorResponse)
def check_in_visitor(
    visitor_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("check_in_visitor")),
):
    """Отметить вход одобренного посетителя"""
    visitor = get_visitor_or_404(db, visitor_id)
    return apply_transition(db, visitor, "check-in", current_user, background_tasks)


@router.patch("/visitors/{visitor_id}/check-out", response_model=VisitorResponse)
def check_out_visitor(
    visitor_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("check_in_visitor")),
):
    """Отметить выход посетителя"""
    visitor = get_visitor_or_404(db, visitor_id)
    return apply_transition(db, visitor, "check-out", current_user, background_tasks)
