from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from giftbox.api.auth import get_current_user
from giftbox.api.orders import notify_status_changed
from giftbox.database import get_db
from giftbox.models.order import OrderStatus
from giftbox.models.user import User
from giftbox.schemas.quality import QualityCheckCreate, QualityCheckOut, QualityCheckResult
from giftbox.services import order_service, quality_service

router = APIRouter(prefix="/quality-checks", tags=["Quality"])


@router.post("", response_model=QualityCheckResult, status_code=201)
def record_check(
    data: QualityCheckCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    before = order_service.get_order(db, data.order_id).status
    check, order = quality_service.record_check(
        db, data.order_id, data.checklist_items, data.overall_status, inspector=user.username, notes=data.notes
    )
    if order.status != before:
        notify_status_changed(background_tasks, order)
    return QualityCheckResult(
        check=QualityCheckOut.model_validate(check),
        order_status=OrderStatus(order.status).value,
    )


@router.get("", response_model=list[QualityCheckOut])
def list_checks(
    order_id: str | None = None,
    overall_status: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return quality_service.list_checks(db, order_id=order_id, overall_status=overall_status)


@router.get("/{check_id}", response_model=QualityCheckOut)
def get_check(check_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return quality_service.get_check(db, check_id)
