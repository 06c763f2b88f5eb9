from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from giftbox.api.auth import get_current_user, require_elevated
from giftbox.database import get_db
from giftbox.models.user import User
from giftbox.schemas.inventory import (
    AlertCreate,
    AlertOut,
    AlertStatusUpdate,
    MaterialCreate,
    MaterialDetailOut,
    MaterialOut,
    MaterialUpdate,
    MovementCreate,
    MovementOut,
    MovementResult,
)
from giftbox.services import alert_service, inventory_service, webhook_service

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.post("", response_model=MaterialOut, status_code=201)
def create_material(data: MaterialCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return inventory_service.create_material(db, data, actor=user.username)


@router.get("", response_model=list[MaterialOut])
def list_materials(
    category: str | None = None,
    low_stock: bool = False,
    search: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return inventory_service.list_materials(db, category=category, low_stock=low_stock, search=search)


@router.get("/low-stock", response_model=list[MaterialOut])
def low_stock(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return inventory_service.low_stock_items(db)


# Ledger

@router.post("/movement", response_model=MovementResult, status_code=201)
def record_movement(
    data: MovementCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    movement, new_stock = inventory_service.record_movement(
        db,
        data.item_id,
        data.type,
        data.quantity,
        unit_cost=data.unit_cost,
        order_id=data.order_id,
        reason=data.reason,
        notes=data.notes,
        actor=user.username,
        idempotency_key=data.idempotency_key,
    )
    result = MovementResult(movement=MovementOut.model_validate(movement), new_stock=new_stock)
    background_tasks.add_task(
        webhook_service.send_event, webhook_service.MOVEMENT_RECORDED, result.model_dump(mode="json")
    )
    return result


@router.get("/movements", response_model=list[MovementOut])
def list_movements(
    item_id: str | None = None,
    type: str | None = None,
    order_id: str | None = None,
    limit: int = 50,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return inventory_service.list_movements(
        db, material_id=item_id, movement_type=type, order_id=order_id, limit=limit
    )


# Reorder alerts

@router.post("/reorder-alert", response_model=AlertOut, status_code=201)
def create_reorder_alert(
    data: AlertCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    alert = alert_service.create_alert(db, data.item_id, data.priority, data.notes, actor=user.username)
    background_tasks.add_task(
        webhook_service.send_event,
        webhook_service.REORDER_ALERT_CREATED,
        AlertOut.model_validate(alert).model_dump(mode="json"),
    )
    return alert


@router.get("/reorder-alerts", response_model=list[AlertOut])
def list_reorder_alerts(
    status: str | None = None,
    item_id: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return alert_service.list_alerts(db, status=status, material_id=item_id)


@router.get("/reorder-alert/{alert_id}", response_model=AlertOut)
def get_reorder_alert(alert_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return alert_service.get_alert(db, alert_id)


@router.put("/reorder-alert/{alert_id}", response_model=AlertOut)
def update_reorder_alert(
    alert_id: str, data: AlertStatusUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return alert_service.update_alert_status(db, alert_id, data.status, data.notes, actor=user.username)


# Single material

@router.get("/{item_id}", response_model=MaterialDetailOut)
def get_material(item_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    material = inventory_service.get_material(db, item_id)
    detail = MaterialDetailOut.model_validate(material)
    detail.movements = [
        MovementOut.model_validate(m) for m in inventory_service.list_movements(db, material_id=item_id, limit=20)
    ]
    return detail


@router.put("/{item_id}", response_model=MaterialOut)
def update_material(
    item_id: str, data: MaterialUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return inventory_service.update_material(db, item_id, data)


@router.delete("/{item_id}", status_code=204)
def delete_material(item_id: str, user: User = Depends(require_elevated), db: Session = Depends(get_db)):
    inventory_service.delete_material(db, item_id)
