# test_order_number.py
import random
import re
from datetime import datetime, timezone

from qrdine.services.order_number import generate_order_number

PATTERN = re.compile(r"^\d{6}-[0-9A-Z]{6}$")


def test_format_and_date_prefix():
    n = generate_order_number(datetime(2025, 1, 15, 23, 59, tzinfo=timezone.utc))
    assert PATTERN.match(n)
    assert n.startswith("250115-")
    assert len(n) == 13


def test_default_clock_is_today_utc():
    n = generate_order_number()
    assert PATTERN.match(n)
    assert n[:6] == datetime.now(timezone.utc).strftime("%y%m%d")


def test_seeded_rng_is_deterministic():
    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    a = generate_order_number(now, rng=random.Random(7))
    b = generate_order_number(now, rng=random.Random(7))
    assert a == b


def test_suffixes_vary():
    numbers = {generate_order_number() for _ in range(50)}
    assert len(numbers) > 45
