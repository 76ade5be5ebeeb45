from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from qrdine.db import Base
from qrdine.models.common import IdMixin, TSMMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderStatus(PyEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class OrderItemStatus(PyEnum):
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    READY = "READY"

class PaymentStatus(PyEnum):
    PENDING = "PENDING"
    PAID = "PAID"

class PaymentMethod(PyEnum):
    CASH = "CASH"
    CARD = "CARD"
    VNPAY = "VNPAY"

class TableStatus(PyEnum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    INACTIVE = "INACTIVE"

class MenuItemStatus(PyEnum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    SOLD_OUT = "SOLD_OUT"

class SelectionType(PyEnum):
    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"

class RecordStatus(PyEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

# ── Menu (read-only snapshot source for ordering) ───────────────────────────
class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[MenuItemStatus] = mapped_column(Enum(MenuItemStatus), default=MenuItemStatus.AVAILABLE)

class ModifierGroup(Base, IdMixin, TSMMixin):
    __tablename__ = "modifier_group"
    name: Mapped[str] = mapped_column(String(120))
    selection_type: Mapped[SelectionType] = mapped_column(Enum(SelectionType), default=SelectionType.SINGLE)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    min_selections: Mapped[int] = mapped_column(Integer, default=0)
    max_selections: Mapped[int] = mapped_column(Integer, default=0)   # 0 = unbounded
    status: Mapped[RecordStatus] = mapped_column(Enum(RecordStatus), default=RecordStatus.ACTIVE)

    options: Mapped[list["ModifierOption"]] = relationship(
        back_populates="group", order_by="ModifierOption.position"
    )

class ModifierOption(Base, IdMixin, TSMMixin):
    __tablename__ = "modifier_option"
    group_id: Mapped[str] = mapped_column(String(36), ForeignKey("modifier_group.id"))
    name: Mapped[str] = mapped_column(String(120))
    price_adjustment: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    status: Mapped[RecordStatus] = mapped_column(Enum(RecordStatus), default=RecordStatus.ACTIVE)
    position: Mapped[int] = mapped_column(Integer, default=0)

    group: Mapped[ModifierGroup] = relationship(back_populates="options")

class MenuItemModifierGroup(Base, TSMMixin):
    __tablename__ = "menu_item_modifier_group"
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(36), ForeignKey("modifier_group.id"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

# ── Dining ──────────────────────────────────────────────────────────────────
class DiningTable(Base, IdMixin, TSMMixin):
    __tablename__ = "dining_table"
    table_number: Mapped[str] = mapped_column(String(30), unique=True)
    location: Mapped[str | None] = mapped_column(String(60))
    capacity: Mapped[int | None]
    status: Mapped[TableStatus] = mapped_column(Enum(TableStatus), default=TableStatus.AVAILABLE)
    # weak pointer: no FK, the order never depends on it
    current_order_id: Mapped[str | None] = mapped_column(String(36))
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": lock_version}

# ── Orders / Payments ───────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    order_number: Mapped[str] = mapped_column(String(20), unique=True)
    table_id: Mapped[str] = mapped_column(String(36), ForeignKey("dining_table.id"))
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    payment_status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    subtotal_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    table: Mapped[DiningTable] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", order_by="OrderItem.position", cascade="all, delete-orphan"
    )
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="order", order_by="Payment.created_at.desc()"
    )

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    # snapshot of the menu item at order time
    menu_item_id: Mapped[str] = mapped_column(String(36))
    menu_item_name: Mapped[str] = mapped_column(String(160))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    modifiers_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[OrderItemStatus] = mapped_column(Enum(OrderItemStatus), default=OrderItemStatus.PENDING)
    special_request: Mapped[str | None] = mapped_column(String(255))

    order: Mapped[Order] = relationship(back_populates="items")
    selected_modifiers: Mapped[list["OrderItemModifier"]] = relationship(
        back_populates="order_item", order_by="OrderItemModifier.position", cascade="all, delete-orphan"
    )

class OrderItemModifier(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item_modifier"
    order_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("order_item.id"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    modifier_option_id: Mapped[str] = mapped_column(String(36))
    modifier_group_id: Mapped[str] = mapped_column(String(36))
    modifier_group_name: Mapped[str] = mapped_column(String(120))
    modifier_option_name: Mapped[str] = mapped_column(String(120))
    price_adjustment: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

    order_item: Mapped[OrderItem] = relationship(back_populates="selected_modifiers")

class Payment(Base, IdMixin, TSMMixin):
    __tablename__ = "payment"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[PaymentStatus] = mapped_column(Enum(PaymentStatus), default=PaymentStatus.PENDING)
    transaction_id: Mapped[str | None] = mapped_column(String(120))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    order: Mapped[Order] = relationship(back_populates="payments")

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    actor_user_id: Mapped[str] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    reason: Mapped[str | None] = mapped_column(Text)  # reason for cancel / manual confirm
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
