import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.database import get_db
from app.models.pre_approval import PreApproval
from app.models.user import User
from app.models.visitor import Visitor
from app.schemas.pre_approval import (
    PassVerifyRequest,
    PassVerifyResponse,
    PreApprovalCreate,
    PreApprovalListResponse,
    PreApprovalResponse,
    PreApprovalStatus,
    QrSentStatus,
    SendQrResponse,
)
from app.schemas.visitor import VisitorResponse
from app.services.auth import get_current_timestamp
from app.services.email_delivery import EmailSender, get_email_sender
from app.services.notifications import send_notifications_for_event
from app.services.pre_approvals import (
    PreApprovalNotFoundError,
    create_pre_approval,
    expire_overdue,
    get_pre_approval,
    list_pre_approvals,
    mark_used,
    summarize,
)
from app.services.qr_issuance import (
    DeliveryStatusPersistError,
    EmailDeliveryError,
    IssuanceInProgressError,
    issue_pass,
)
from app.services.qr_pass import (
    QrEncoder,
    QrGenerationError,
    build_pass_payload,
    check_pass_payload,
    get_qr_encoder,
    parse_pass_payload,
    serialize_payload,
    to_data_url,
)
from app.services.settings import get_company_name
from app.services.tokens import generate_badge_number

router = APIRouter()
logger = logging.getLogger(__name__)


def build_pre_approval_response(entry: PreApproval) -> PreApprovalResponse:
    return PreApprovalResponse.model_validate(entry)


def load_entry(db: Session, entry_id: str, actor: User) -> PreApproval:
    try:
        return get_pre_approval(db, entry_id, actor)
    except PreApprovalNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Предварительное одобрение не найдено",
        )


@router.get("/pre-approvals", response_model=PreApprovalListResponse)
def get_pre_approvals(
    status_filter: Optional[PreApprovalStatus] = Query(None, alias="status"),
    qr_sent_status: Optional[QrSentStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("pre_approve")),
):
    """
    Список предварительных одобрений, новые сверху.
    Админ видит все записи, сотрудник - только свои
    """
    entries = list_pre_approvals(db, current_user, status=status_filter, qr_sent_status=qr_sent_status)
    return PreApprovalListResponse(
        pre_approvals=[build_pre_approval_response(entry) for entry in entries],
        summary=summarize(entries),
    )


@router.post("/pre-approvals", response_model=PreApprovalResponse, status_code=status.HTTP_201_CREATED)
def create_pre_approval_entry(
    data: PreApprovalCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("pre_approve")),
):
    """Создать предварительное одобрение от имени текущего пользователя"""
    entry = create_pre_approval(db, data, current_user)
    response = build_pre_approval_response(entry)

    background_tasks.add_task(
        send_notifications_for_event,
        "pre_approval_created",
        {"actor": current_user.name, "pre_approval": response.model_dump()},
    )
    return response


@router.post("/pre-approvals/verify", response_model=PassVerifyResponse)
def verify_pass(
    data: PassVerifyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("check_in_visitor")),
):
    """Проверить считанный QR-пропуск (без изменений в БД)"""
    try:
        payload = parse_pass_payload(data.payload)
    except ValueError as e:
        return PassVerifyResponse(valid=False, reason=str(e))

    reason = check_pass_payload(payload)
    visitor_id = payload.get("visitor_id")
    entry = None
    if isinstance(visitor_id, str):
        entry = db.query(PreApproval).filter(PreApproval.id == visitor_id).first()
    if reason is None and entry is None:
        reason = "Предварительное одобрение не найдено"
    elif reason is None and entry.status == "used":
        reason = "Пропуск уже использован"

    return PassVerifyResponse(
        valid=reason is None,
        reason=reason,
        pre_approval=build_pre_approval_response(entry) if entry else None,
    )


@router.post("/pre-approvals/check-in", response_model=VisitorResponse, status_code=status.HTTP_201_CREATED)
def check_in_with_pass(
    data: PassVerifyRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("check_in_visitor")),
):
    """Пропустить посетителя по QR-пропуску: запись становится used, посетитель - checked-in"""
    try:
        payload = parse_pass_payload(data.payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    reason = check_pass_payload(payload)
    if reason is not None:
        logger.warning(f"Отклонен QR-пропуск: reason='{reason}', guard='{current_user.email}'")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    expire_overdue(db)
    entry = db.query(PreApproval).filter(PreApproval.id == payload.get("visitor_id")).first()
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Предварительное одобрение не найдено",
        )
    if entry.status != "active":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Пропуск уже использован" if entry.status == "used" else "Срок действия пропуска истек",
        )

    timestamp = get_current_timestamp()
    visitor = Visitor(
        full_name=entry.visitor_name,
        contact_number=entry.visitor_phone,
        email=entry.visitor_email,
        purpose=entry.purpose,
        host_employee_id=entry.host_employee_id,
        host_employee_name=entry.host_employee_name,
        host_department=(entry.host.department if entry.host else None) or "",
        badge_number=generate_badge_number(),
        qr_code=entry.qr_code,
        status="checked-in",
        check_in_time=timestamp,
        approval_time=entry.created_at,
        approved_by=entry.host_employee_id,
        pre_approved=1,
        pre_approval_id=entry.id,
        registered_by=current_user.id,
        created_at=timestamp,
    )
    db.add(visitor)
    db.flush()
    mark_used(db, entry, visitor.id)
    db.commit()
    db.refresh(visitor)

    logger.info(
        f"Вход по QR-пропуску: pre_approval={entry.id}, visitor={visitor.id}, guard='{current_user.email}'"
    )

    response = VisitorResponse.model_validate(visitor)
    background_tasks.add_task(
        send_notifications_for_event,
        "visitor_checked_in",
        {"actor": current_user.name, "visitor": response.model_dump()},
    )
    return response


@router.get("/pre-approvals/{entry_id}", response_model=PreApprovalResponse)
def get_pre_approval_entry(
    entry_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("pre_approve")),
):
    return build_pre_approval_response(load_entry(db, entry_id, current_user))


@router.get("/pre-approvals/{entry_id}/qr-preview")
def preview_qr(
    entry_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("pre_approve")),
    encoder: QrEncoder = Depends(get_qr_encoder),
):
    """Подписанный payload и QR-картинка (data URL) для показа на экране"""
    entry = load_entry(db, entry_id, current_user)
    payload = build_pass_payload(entry)
    try:
        image = encoder.encode(serialize_payload(payload))
    except QrGenerationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Не удалось сгенерировать QR-код: {e}",
        )
    return {"payload": payload, "qr_image": to_data_url(image)}


@router.post("/pre-approvals/{entry_id}/send-qr", response_model=SendQrResponse)
def send_qr(
    entry_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("pre_approve")),
    encoder: QrEncoder = Depends(get_qr_encoder),
    sender: EmailSender = Depends(get_email_sender),
):
    """Отправить (или отправить повторно) QR-пропуск посетителю"""
    entry = load_entry(db, entry_id, current_user)
    if entry.status != "active":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Нельзя отправить пропуск для записи в статусе '{entry.status}'",
        )

    try:
        result = issue_pass(db, entry, encoder, sender, company_name=get_company_name(db))
    except IssuanceInProgressError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="QR-пропуск уже отправляется",
        )
    except QrGenerationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Не удалось сгенерировать QR-код: {e}",
        )
    except EmailDeliveryError as e:
        db.refresh(entry)
        background_tasks.add_task(
            send_notifications_for_event,
            "qr_send_failed",
            {
                "actor": current_user.name,
                "pre_approval": build_pre_approval_response(entry).model_dump(),
                "error": e.reason,
            },
        )
        # Ответ возвращаем, а не raise: иначе фоновая задача с уведомлением не выполнится
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": e.reason},
            background=background_tasks,
        )
    except DeliveryStatusPersistError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Письмо отправлено, но статус отправки не удалось сохранить",
        )

    db.refresh(entry)
    response = build_pre_approval_response(entry)
    background_tasks.add_task(
        send_notifications_for_event,
        "qr_sent",
        {"actor": current_user.name, "pre_approval": response.model_dump()},
    )
    return SendQrResponse(
        success=True,
        message_id=result.message_id,
        recipient=result.recipient,
        valid_until=result.valid_until,
        message=f"QR-пропуск отправлен на {result.recipient}",
        pre_approval=response,
    )
