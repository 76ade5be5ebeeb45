"""
Order construction.

``OrderTransactionManager`` turns a guest's cart into a persisted order graph
(Order -> OrderItem -> OrderItemModifier) and marks the table occupied, all in
one unit of work. Menu and modifier rows are read inside that same unit so the
prices written are the prices that were validated.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from qrdine.db import unit_of_work
from qrdine.models.common import utcnow
from qrdine.models.core import (
    DiningTable, TableStatus, MenuItem, MenuItemStatus, ModifierGroup, ModifierOption,
    MenuItemModifierGroup, RecordStatus, Order, OrderItem, OrderItemModifier,
    OrderStatus, OrderItemStatus, PaymentStatus,
)
from qrdine.schemas.orders import OrderIn, OrderItemIn, AddItemsIn
from qrdine.services import events as ev
from qrdine.services.billing import TaxPolicy, no_tax, compute_totals, line_subtotal, _money
from qrdine.services.errors import (
    NotFound, TableInactive, ItemUnavailable, ModifierRuleViolation,
    InvalidStatusTransition, OrderLocked, TableConflict, OrderNumberConflict,
)
from qrdine.services.modifiers import GroupRule, validate_modifiers
from qrdine.services.order_number import generate_order_number
from qrdine.util.audit import audit

logger = logging.getLogger("qrdine.orders")

CLOSED_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)
EDITABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.ACCEPTED)

TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.ACCEPTED: (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.PREPARING: (OrderStatus.READY,),
    OrderStatus.READY: (OrderStatus.SERVED,),
    OrderStatus.SERVED: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (),
}

ORDER_NUMBER_ATTEMPTS = 3


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    return dst in TRANSITIONS.get(src, ())


def load_modifier_rules(db: Session, item_id: str) -> list[GroupRule]:
    """Active modifier groups of an item (display order) with their active options."""
    groups = (
        db.query(ModifierGroup)
          .join(MenuItemModifierGroup, MenuItemModifierGroup.group_id == ModifierGroup.id)
          .filter(
              MenuItemModifierGroup.item_id == item_id,
              ModifierGroup.status == RecordStatus.ACTIVE,
              ModifierGroup.deleted_at.is_(None),
          )
          .order_by(MenuItemModifierGroup.position.asc(), ModifierGroup.created_at.asc())
          .all()
    )
    if not groups:
        return []

    options = (
        db.query(ModifierOption)
          .filter(
              ModifierOption.group_id.in_([g.id for g in groups]),
              ModifierOption.status == RecordStatus.ACTIVE,
              ModifierOption.deleted_at.is_(None),
          )
          .order_by(ModifierOption.position.asc(), ModifierOption.created_at.asc())
          .all()
    )
    by_group: dict[str, list[ModifierOption]] = {}
    for o in options:
        by_group.setdefault(o.group_id, []).append(o)
    return [GroupRule.from_model(g, by_group.get(g.id, [])) for g in groups]


def _occupy_table(db: Session, table: DiningTable, order: Order) -> None:
    # last writer wins on the pointer unless lock_version moved under us
    table.status = TableStatus.OCCUPIED
    table.current_order_id = order.id
    db.flush()


def _release_table(db: Session, order: Order) -> None:
    table = db.get(DiningTable, order.table_id)
    if table is None:
        return
    remaining = (
        db.query(Order)
          .filter(
              Order.table_id == table.id,
              Order.id != order.id,
              Order.status.notin_(CLOSED_STATUSES),
          )
          .order_by(Order.created_at.desc())
          .first()
    )
    if remaining is not None:
        if table.current_order_id == order.id:
            table.current_order_id = remaining.id
    else:
        table.current_order_id = None
        if table.status != TableStatus.INACTIVE:
            table.status = TableStatus.AVAILABLE
    db.flush()


def _event_payload(order: Order) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "table_id": order.table_id,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "total_amount": str(order.total_amount),
    }


class OrderTransactionManager:
    def __init__(
        self,
        tax_policy: TaxPolicy = no_tax,
        number_generator: Callable[[], str] = generate_order_number,
        events: ev.EventBus = ev.event_bus,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.tax_policy = tax_policy
        self.number_generator = number_generator
        self.events = events
        self.clock = clock

    # ---------- create ----------

    def create_order(self, db: Session, body: OrderIn) -> Order:
        try:
            with unit_of_work(db):
                table = db.get(DiningTable, body.table_id)
                if not table or table.deleted_at is not None:
                    raise NotFound("Table not found")
                if table.status == TableStatus.INACTIVE:
                    raise TableInactive("Table is not active")

                lines = self._price_lines(db, body.items)
                totals = compute_totals((l.subtotal for l in lines), self.tax_policy)

                order = Order(
                    order_number=self._next_order_number(db),
                    table_id=table.id,
                    status=OrderStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    subtotal_amount=totals["subtotal"],
                    tax_amount=totals["tax"],
                    discount_amount=totals["discount"],
                    total_amount=totals["total"],
                    notes=body.notes,
                    items=lines,
                )
                db.add(order)
                try:
                    db.flush()
                except IntegrityError:
                    raise OrderNumberConflict("Could not allocate a unique order number, please retry")

                _occupy_table(db, table, order)
        except StaleDataError:
            logger.warning("table %s changed during order creation", body.table_id)
            raise TableConflict("Table was updated by another order, please retry")

        logger.info("order %s created for table %s total=%s", order.order_number, order.table_id, order.total_amount)
        self.events.publish(ev.ORDER_CREATED, _event_payload(order))
        return order

    def _price_lines(self, db: Session, items: Iterable[OrderItemIn], start: int = 0) -> list[OrderItem]:
        return [self._price_line(db, line, position) for position, line in enumerate(items, start=start)]

    def _price_line(self, db: Session, line: OrderItemIn, position: int) -> OrderItem:
        item = db.get(MenuItem, line.menu_item_id)
        if not item or item.deleted_at is not None:
            raise NotFound(f'Menu item "{line.menu_item_id}" not found')
        if item.status != MenuItemStatus.AVAILABLE:
            raise ItemUnavailable(f'Menu item "{item.name}" is not available')

        rules = load_modifier_rules(db, item.id)
        try:
            selection = validate_modifiers(item.name, rules, [m.modifier_option_id for m in line.modifiers])
        except ModifierRuleViolation as e:
            logger.info("modifier selection rejected for item %s: %s", item.id, e.code)
            raise

        unit_price = _money(item.price)
        modifiers_total = _money(selection.modifiers_total)
        return OrderItem(
            position=position,
            menu_item_id=item.id,
            menu_item_name=item.name,
            unit_price=unit_price,
            quantity=line.quantity,
            modifiers_total=modifiers_total,
            subtotal=line_subtotal(unit_price, modifiers_total, line.quantity),
            status=OrderItemStatus.PENDING,
            special_request=line.special_request,
            selected_modifiers=[
                OrderItemModifier(
                    position=i,
                    modifier_option_id=s.option_id,
                    modifier_group_id=s.group_id,
                    modifier_group_name=s.group_name,
                    modifier_option_name=s.option_name,
                    price_adjustment=s.price_adjustment,
                )
                for i, s in enumerate(selection.selected)
            ],
        )

    def _next_order_number(self, db: Session) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            number = self.number_generator()
            taken = db.query(Order.id).filter(Order.order_number == number).first()
            if not taken:
                return number
            logger.warning("order number %s already taken, regenerating", number)
        raise OrderNumberConflict("Could not allocate a unique order number, please retry")

    # ---------- add items ----------

    def add_items(self, db: Session, order_id: str, body: AddItemsIn) -> Order:
        with unit_of_work(db):
            order = db.get(Order, order_id)
            if not order:
                raise NotFound(f"Order #{order_id} not found")
            if order.status not in EDITABLE_STATUSES:
                raise OrderLocked(
                    f"Cannot add items to order - order is already {order.status.value}. "
                    "Only PENDING or ACCEPTED orders can be modified."
                )
            if order.payment_status == PaymentStatus.PAID:
                raise OrderLocked(f"Cannot add items to order - order {order.order_number} is already paid.")

            new_lines = self._price_lines(db, body.items, start=len(order.items))
            order.items.extend(new_lines)

            totals = compute_totals((l.subtotal for l in order.items), self.tax_policy, order.discount_amount)
            order.subtotal_amount = totals["subtotal"]
            order.tax_amount = totals["tax"]
            order.total_amount = totals["total"]
            if body.notes:
                order.notes = f"{order.notes}\n[Added items] {body.notes}" if order.notes else f"[Added items] {body.notes}"

        logger.info("order %s: %d item(s) added, total=%s", order.order_number, len(new_lines), order.total_amount)
        self.events.publish(ev.ORDER_ITEMS_ADDED, _event_payload(order))
        return order

    # ---------- status ----------

    def update_status(self, db: Session, order_id: str, new_status: OrderStatus, actor_user_id: str) -> Order:
        try:
            with unit_of_work(db):
                order = db.get(Order, order_id)
                if not order:
                    raise NotFound(f"Order #{order_id} not found")
                before = order.status
                if not can_transition(before, new_status):
                    raise InvalidStatusTransition(
                        f"Invalid status transition from {before.value} to {new_status.value}"
                    )

                order.status = new_status
                now = self.clock()
                if new_status == OrderStatus.ACCEPTED:
                    order.confirmed_at = now
                elif new_status == OrderStatus.COMPLETED:
                    order.completed_at = now
                elif new_status == OrderStatus.CANCELLED:
                    order.cancelled_at = now

                if new_status in CLOSED_STATUSES:
                    _release_table(db, order)

                audit(db, actor_user_id, "Order", order.id, "STATUS",
                      before={"status": before.value}, after={"status": new_status.value})
        except StaleDataError:
            raise TableConflict("Table was updated concurrently, please retry")

        payload = _event_payload(order)
        self.events.publish(ev.ORDER_STATUS_UPDATED, payload)
        if new_status == OrderStatus.READY:
            self.events.publish(ev.ORDER_READY, payload)
        return order
