from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from qrdine.db import get_db
from qrdine.deps import require_auth, get_order_manager
from qrdine.models.core import OrderStatus
from qrdine.schemas.orders import OrderIn, OrderOut, AddItemsIn, StatusIn
from qrdine.services import queries
from qrdine.services.ordering import OrderTransactionManager

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    body: OrderIn,
    db: Session = Depends(get_db),
    manager: OrderTransactionManager = Depends(get_order_manager),
):
    """
    Guest checkout: cart -> order. No auth, the table code in the QR is the credential.

    Body (camelCase or snake_case):
      { tableId, notes?, items: [{ menuItemId, quantity, specialRequest?, modifiers: [{ modifierOptionId }] }] }
    """
    order = manager.create_order(db, body)
    return queries.get_order(db, order.id)


@router.get("/", response_model=List[OrderOut])
def list_orders(
    status: str | None = None,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    wanted = None
    if status:
        try:
            wanted = OrderStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid status")
    return queries.list_orders(db, wanted)


@router.get("/table/{table_id}/current", response_model=List[OrderOut])
def current_orders(table_id: str, db: Session = Depends(get_db)):
    return queries.current_orders_for_table(db, table_id)


@router.get("/table/{table_id}/unpaid", response_model=List[OrderOut])
def unpaid_orders(table_id: str, db: Session = Depends(get_db)):
    return queries.unpaid_orders_for_table(db, table_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db)):
    return queries.get_order(db, order_id)


@router.post("/{order_id}/items", response_model=OrderOut)
def add_items(
    order_id: str,
    body: AddItemsIn,
    db: Session = Depends(get_db),
    manager: OrderTransactionManager = Depends(get_order_manager),
):
    manager.add_items(db, order_id, body)
    return queries.get_order(db, order_id)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: str,
    body: StatusIn,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
    manager: OrderTransactionManager = Depends(get_order_manager),
):
    manager.update_status(db, order_id, OrderStatus(body.status), actor_user_id=sub)
    return queries.get_order(db, order_id)
