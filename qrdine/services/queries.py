from sqlalchemy.orm import Session, selectinload

from qrdine.models.core import DiningTable, Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus
from qrdine.services.errors import NotFound

_HYDRATE = (
    selectinload(Order.items).selectinload(OrderItem.selected_modifiers),
    selectinload(Order.table),
)


def _require_table(db: Session, table_id: str) -> DiningTable:
    table = db.get(DiningTable, table_id)
    if not table or table.deleted_at is not None:
        raise NotFound("Table not found")
    return table


def get_order(db: Session, order_id: str) -> Order:
    order = (
        db.query(Order)
          .options(*_HYDRATE, selectinload(Order.payments))
          .filter(Order.id == order_id)
          .first()
    )
    if not order:
        raise NotFound(f"Order #{order_id} not found")
    return order


def list_orders(db: Session, status: OrderStatus | None = None) -> list[Order]:
    q = db.query(Order).options(*_HYDRATE)
    if status is not None:
        q = q.filter(Order.status == status)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()


def current_orders_for_table(db: Session, table_id: str) -> list[Order]:
    """Orders still in flight at a table (not completed, not cancelled), newest first."""
    _require_table(db, table_id)
    return (
        db.query(Order)
          .options(*_HYDRATE)
          .filter(
              Order.table_id == table_id,
              Order.status.notin_((OrderStatus.COMPLETED, OrderStatus.CANCELLED)),
          )
          .order_by(Order.created_at.desc(), Order.id.desc())
          .all()
    )


def unpaid_orders_for_table(db: Session, table_id: str) -> list[Order]:
    _require_table(db, table_id)
    return (
        db.query(Order)
          .options(*_HYDRATE)
          .filter(
              Order.table_id == table_id,
              Order.payment_status == PaymentStatus.PENDING,
              Order.status != OrderStatus.CANCELLED,
          )
          .order_by(Order.created_at.desc(), Order.id.desc())
          .all()
    )


def payments_for_order(db: Session, order_id: str) -> list[Payment]:
    return (
        db.query(Payment)
          .filter(Payment.order_id == order_id)
          .order_by(Payment.created_at.desc(), Payment.id.desc())
          .all()
    )


def latest_payment(db: Session, order_id: str, method: PaymentMethod, status: PaymentStatus) -> Payment | None:
    """Newest payment of ``method`` in ``status`` for an order; the gateway only echoes the order reference."""
    return (
        db.query(Payment)
          .filter(
              Payment.order_id == order_id,
              Payment.method == method,
              Payment.status == status,
          )
          .order_by(Payment.created_at.desc(), Payment.id.desc())
          .first()
    )
