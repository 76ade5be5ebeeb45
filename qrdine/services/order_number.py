import secrets
import string
from datetime import datetime, timezone

BASE36 = string.digits + string.ascii_uppercase
SUFFIX_LEN = 6


def generate_order_number(now: datetime | None = None, rng=secrets.SystemRandom()) -> str:
    """Human-friendly order number: YYMMDD-XXXXXX (UTC date, base36 suffix)."""
    now = now or datetime.now(timezone.utc)
    suffix = "".join(rng.choice(BASE36) for _ in range(SUFFIX_LEN))
    return f"{now.strftime('%y%m%d')}-{suffix}"
