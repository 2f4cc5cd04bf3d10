from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.visitor import (
    DEPARTMENTS,
    PURPOSES,
    HostOption,
    HostsListResponse,
    ReferenceListsResponse,
)

router = APIRouter()


@router.get("/reference-lists", response_model=ReferenceListsResponse)
def get_reference_lists(current_user: User = Depends(get_current_user)):
    """Справочники для выпадающих списков на формах"""
    return ReferenceListsResponse(purposes=list(PURPOSES), departments=list(DEPARTMENTS))


@router.get("/hosts", response_model=HostsListResponse)
def get_hosts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Активные сотрудники, которых можно указать принимающими"""
    hosts = db.query(User).filter(
        User.is_active == 1,
        User.role.in_(["employee", "admin"]),
    ).order_by(User.name).all()
    return HostsListResponse(hosts=[HostOption.model_validate(host) for host in hosts])
