import logging
from datetime import date, datetime, time
from typing import Dict, List, Optional

from pytz import timezone
from sqlalchemy.orm import Session

from app.config import settings
from app.models.pre_approval import PreApproval, QR_SENT_STATUSES
from app.models.user import User
from app.schemas.pre_approval import PreApprovalCreate
from app.services.auth import get_current_timestamp, get_now, parse_timestamp
from app.services.tokens import generate_pre_approval_code

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)


class PreApprovalNotFoundError(LookupError):
    pass


def compute_valid_until(scheduled_date: date) -> datetime:
    """Конец дня визита (23:59:59.999) в часовом поясе приложения"""
    tz = timezone(settings.TIMEZONE)
    return tz.localize(datetime.combine(scheduled_date, END_OF_DAY))


def create_pre_approval(db: Session, data: PreApprovalCreate, actor: User) -> PreApproval:
    """Создать запись: статус active, письмо еще не отправлялось"""
    timestamp = get_current_timestamp()

    entry = PreApproval(
        visitor_name=data.visitor_name,
        visitor_email=data.visitor_email,
        visitor_phone=data.visitor_phone,
        purpose=data.purpose,
        scheduled_date=data.scheduled_date.isoformat(),
        start_time=data.start_time.strftime("%H:%M"),
        end_time=data.end_time.strftime("%H:%M"),
        host_employee_id=actor.id,
        host_employee_name=actor.name,
        status="active",
        qr_code=generate_pre_approval_code(),
        qr_sent=0,
        qr_sent_at=None,
        qr_sent_status="not-sent",
        valid_until=compute_valid_until(data.scheduled_date).isoformat(),
        created_at=timestamp,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    logger.info(
        f"Создано предварительное одобрение: ID={entry.id}, visitor='{entry.visitor_name}', "
        f"date={entry.scheduled_date}, host='{actor.email}'"
    )
    return entry


def visible_pre_approvals(db: Session, actor: User):
    """Админ видит все записи, остальные - только свои"""
    query = db.query(PreApproval)
    if not actor.is_admin:
        query = query.filter(PreApproval.host_employee_id == actor.id)
    return query


def list_pre_approvals(
    db: Session,
    actor: User,
    status: Optional[str] = None,
    qr_sent_status: Optional[str] = None,
) -> List[PreApproval]:
    """Записи, видимые пользователю, новые сверху"""
    expire_overdue(db)

    query = visible_pre_approvals(db, actor)
    if status:
        query = query.filter(PreApproval.status == status)
    if qr_sent_status:
        query = query.filter(PreApproval.qr_sent_status == qr_sent_status)
    return query.order_by(PreApproval.created_at.desc()).all()


def get_pre_approval(db: Session, entry_id: str, actor: User) -> PreApproval:
    expire_overdue(db)
    entry = visible_pre_approvals(db, actor).filter(PreApproval.id == entry_id).first()
    if entry is None:
        raise PreApprovalNotFoundError(entry_id)
    return entry


def summarize(entries: List[PreApproval]) -> Dict[str, int]:
    return {
        "total": len(entries),
        "sent": sum(1 for entry in entries if entry.qr_sent_status == "sent"),
        "active": sum(1 for entry in entries if entry.status == "active"),
    }


def update_delivery_status(
    db: Session,
    entry_id: str,
    qr_sent_status: str,
    sent_at: Optional[datetime] = None,
    message_id: Optional[str] = None,
    error: Optional[str] = None,
) -> PreApproval:
    """
    Выставить состояние отправки письма.

    Без блокировок: при одновременной отправке из двух сессий побеждает
    последняя запись. Отправка - редкое ручное действие оператора.
    """
    if qr_sent_status not in QR_SENT_STATUSES:
        raise ValueError(f"Недопустимый статус отправки: {qr_sent_status}")

    entry = db.query(PreApproval).filter(PreApproval.id == entry_id).first()
    if entry is None:
        raise PreApprovalNotFoundError(entry_id)

    entry.qr_sent_status = qr_sent_status
    if qr_sent_status == "sent":
        entry.qr_sent = 1
        entry.qr_sent_at = (sent_at or get_now()).isoformat()
        entry.qr_message_id = message_id
        entry.qr_last_error = None
    else:
        # qr_sent_at хранится только для статуса sent
        entry.qr_sent = 0
        entry.qr_sent_at = None
        entry.qr_last_error = error if qr_sent_status == "failed" else None
    entry.updated_at = get_current_timestamp()

    db.commit()
    db.refresh(entry)
    return entry


def expire_overdue(db: Session, now: Optional[datetime] = None) -> int:
    """Перевести active-записи с истекшим valid_until в expired. Возвращает количество"""
    if now is None:
        now = get_now()

    expired_count = 0
    for entry in db.query(PreApproval).filter(PreApproval.status == "active").all():
        if parse_timestamp(entry.valid_until) < now:
            entry.status = "expired"
            entry.updated_at = now.isoformat()
            expired_count += 1

    if expired_count:
        db.commit()
        logger.info(f"Истекло предварительных одобрений: {expired_count}")
    return expired_count


def mark_used(db: Session, entry: PreApproval, visitor_id: str) -> PreApproval:
    """Пропуск предъявлен на проходной: запись больше не active"""
    timestamp = get_current_timestamp()
    entry.status = "used"
    entry.used_at = timestamp
    entry.used_visitor_id = visitor_id
    entry.updated_at = timestamp
    return entry
