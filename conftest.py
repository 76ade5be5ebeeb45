# conftest.py
import os
import types
from datetime import datetime
from decimal import Decimal

import pytest

# settings are read at import time
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import qrdine.models  # noqa: E402,F401
from qrdine.db import Base, get_db  # noqa: E402
from qrdine.deps import get_order_manager, get_vnpay_signer  # noqa: E402
from qrdine.main import app  # noqa: E402
from qrdine.models.core import (  # noqa: E402
    DiningTable, TableStatus, MenuItem, MenuItemStatus, ModifierGroup, ModifierOption,
    MenuItemModifierGroup, SelectionType, RecordStatus,
)
from qrdine.services.events import EventBus  # noqa: E402
from qrdine.services.ordering import OrderTransactionManager  # noqa: E402
from qrdine.services.vnpay import VNPayConfig, VNPaySigner  # noqa: E402
from qrdine.util.security import create_token  # noqa: E402

VNPAY_SECRET = "SECRETKEY123"
VNPAY_BASE = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
VNPAY_RETURN = "http://localhost:3000/payment/vnpay-return"
FIXED_NOW = datetime(2025, 1, 15, 10, 30, 0)


class RecordingBus(EventBus):
    def __init__(self):
        super().__init__()
        self.published: list[tuple[str, dict]] = []

    def publish(self, name, payload):
        self.published.append((name, payload))
        super().publish(name, payload)

    def names(self) -> list[str]:
        return [n for n, _ in self.published]


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def manager(bus):
    return OrderTransactionManager(events=bus)


@pytest.fixture
def vnpay_config():
    return VNPayConfig(
        url=VNPAY_BASE,
        tmn_code="QRDINE01",
        hash_secret=VNPAY_SECRET,
        return_url=VNPAY_RETURN,
        usd_to_vnd_rate=Decimal("25000"),
    )


@pytest.fixture
def signer(vnpay_config):
    return VNPaySigner(vnpay_config, clock=lambda: FIXED_NOW)


@pytest.fixture
def client(session_factory, manager, signer, bus, monkeypatch):
    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    # reconciler picks the module-level bus up through deps
    monkeypatch.setattr("qrdine.deps.event_bus", bus)
    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_order_manager] = lambda: manager
    app.dependency_overrides[get_vnpay_signer] = lambda: signer
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {create_token('staff-1')}"}


def _group(db, name, selection_type, options, required=False, min_sel=0, max_sel=0):
    g = ModifierGroup(
        name=name, selection_type=selection_type, is_required=required,
        min_selections=min_sel, max_selections=max_sel, status=RecordStatus.ACTIVE,
    )
    db.add(g)
    db.flush()
    opts = []
    for pos, (opt_name, delta) in enumerate(options):
        o = ModifierOption(group_id=g.id, name=opt_name, price_adjustment=Decimal(delta), position=pos)
        db.add(o)
        opts.append(o)
    db.flush()
    return g, opts


def _link(db, item, group, position=0):
    db.add(MenuItemModifierGroup(item_id=item.id, group_id=group.id, position=position))


@pytest.fixture
def menu(db):
    """
    T1 (available), T9 (inactive)
    Burger 10.00: Size (required SINGLE: Small +0, Medium +1, Large +2),
                  Toppings (MULTIPLE max 2: Cheese +0.50, Bacon +1.25, Egg +0.75)
    Soup 4.50: no modifiers
    Pizza 12.00: Crust (SINGLE: Thin +0)
    Lobster: SOLD_OUT
    """
    table = DiningTable(table_number="T1", location="Hall", capacity=4, status=TableStatus.AVAILABLE)
    inactive = DiningTable(table_number="T9", status=TableStatus.INACTIVE)
    burger = MenuItem(name="Burger", price=Decimal("10.00"), status=MenuItemStatus.AVAILABLE)
    soup = MenuItem(name="Soup", price=Decimal("4.50"), status=MenuItemStatus.AVAILABLE)
    pizza = MenuItem(name="Pizza", price=Decimal("12.00"), status=MenuItemStatus.AVAILABLE)
    lobster = MenuItem(name="Lobster", price=Decimal("40.00"), status=MenuItemStatus.SOLD_OUT)
    db.add_all([table, inactive, burger, soup, pizza, lobster])
    db.flush()

    size, (small, medium, large) = _group(
        db, "Size", SelectionType.SINGLE,
        [("Small", "0"), ("Medium", "1.00"), ("Large", "2.00")],
        required=True, min_sel=1, max_sel=1,
    )
    toppings, (cheese, bacon, egg) = _group(
        db, "Toppings", SelectionType.MULTIPLE,
        [("Cheese", "0.50"), ("Bacon", "1.25"), ("Egg", "0.75")],
        max_sel=2,
    )
    crust, (thin,) = _group(db, "Crust", SelectionType.SINGLE, [("Thin", "0")])
    _link(db, burger, size, 0)
    _link(db, burger, toppings, 1)
    _link(db, pizza, crust, 0)
    db.commit()

    return types.SimpleNamespace(
        table_id=table.id, inactive_table_id=inactive.id,
        burger_id=burger.id, soup_id=soup.id, pizza_id=pizza.id, lobster_id=lobster.id,
        size_id=size.id, toppings_id=toppings.id,
        small_id=small.id, medium_id=medium.id, large_id=large.id,
        cheese_id=cheese.id, bacon_id=bacon.id, egg_id=egg.id, thin_id=thin.id,
    )


def burger_line(menu, *option_ids, quantity=1, **extra):
    return {
        "menuItemId": menu.burger_id,
        "quantity": quantity,
        "modifiers": [{"modifierOptionId": o} for o in option_ids],
        **extra,
    }
