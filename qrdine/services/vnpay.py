"""
VNPay request signing and callback verification.

The gateway signs ``key=value`` pairs sorted by key and joined with ``&``,
values percent-encoded form style (space -> ``+``), HMAC-SHA512 over the UTF-8
bytes with the merchant secret, hex digest. Any drift in ordering or encoding
breaks the signature, so both directions go through ``canonical_query``.

Amounts are held in the merchant's display currency (USD) and converted to
VND for the gateway at a configured rate, rounded to the nearest 100 VND.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Callable, Mapping
from urllib.parse import quote_plus, parse_qsl
from zoneinfo import ZoneInfo

from qrdine.schemas.payments import VNPayCallback

logger = logging.getLogger("qrdine.vnpay")

VERSION = "2.1.0"
COMMAND = "pay"
CURRENCY = "VND"
ORDER_TYPE = "other"
HASH_KEYS = ("vnp_SecureHash", "vnp_SecureHashType")
SUCCESS = "00"
INVALID_SIGNATURE = "97"

# same set encodeURIComponent leaves alone, on top of quote_plus' defaults
_SAFE = "!*'()"

RESPONSE_MESSAGES = {
    "00": "Transaction successful",
    "07": "Transaction successful. Suspicious transaction (related to fraud, unusual transaction)",
    "09": "Customer has not registered for Internet Banking at bank",
    "10": "Customer entered incorrect card/account information more than 3 times",
    "11": "Payment deadline has expired. Please try again",
    "12": "Card/Account is locked",
    "13": "Incorrect transaction authentication password (OTP)",
    "24": "Customer canceled transaction",
    "51": "Account does not have enough balance",
    "65": "Account has exceeded daily transaction limit",
    "75": "Payment bank is under maintenance",
    "79": "Payment amount exceeds limit",
    "99": "Unknown error",
}


def response_message(code: str | None) -> str:
    return RESPONSE_MESSAGES.get(code or "", "Unknown error")


@dataclass(frozen=True)
class VNPayConfig:
    url: str
    tmn_code: str
    hash_secret: str
    return_url: str
    usd_to_vnd_rate: Decimal = Decimal("25000")
    tz: str = "Asia/Ho_Chi_Minh"

    @classmethod
    def from_settings(cls, s) -> "VNPayConfig":
        return cls(
            url=s.VNPAY_URL,
            tmn_code=s.VNPAY_TMN_CODE,
            hash_secret=s.VNPAY_HASH_SECRET,
            return_url=s.VNPAY_RETURN_URL,
            usd_to_vnd_rate=Decimal(str(s.USD_TO_VND_RATE)),
            tz=s.TZ,
        )


@dataclass
class VNPayResult:
    signature_valid: bool
    success: bool
    code: str
    message: str
    order_id: str | None = None
    amount: Decimal | None = None       # display currency
    amount_vnd: Decimal | None = None
    transaction_no: str | None = None
    transaction_status: str | None = None
    response_code: str | None = None
    bank_code: str | None = None
    bank_tran_no: str | None = None
    card_type: str | None = None
    pay_date: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        for k in ("amount", "amount_vnd"):
            if data[k] is not None:
                data[k] = float(data[k])
        return data


def encode_value(value) -> str:
    return quote_plus(str(value), safe=_SAFE)


def canonical_query(params: Mapping[str, object]) -> str:
    """``k1=v1&k2=v2`` over keys in sorted order, values form-encoded."""
    return "&".join(f"{key}={encode_value(params[key])}" for key in sorted(params))


class VNPaySigner:
    def __init__(self, config: VNPayConfig, clock: Callable[[], datetime] | None = None):
        self.config = config
        self._clock = clock or (lambda: datetime.now(ZoneInfo(config.tz)))

    # ---------- money ----------

    def to_vnd(self, amount) -> int:
        """Display amount -> VND, rounded half-up to the nearest 100."""
        vnd = Decimal(str(amount)) * self.config.usd_to_vnd_rate
        return int((vnd / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * 100)

    def to_display(self, amount_vnd: Decimal) -> Decimal:
        return amount_vnd / self.config.usd_to_vnd_rate

    # ---------- signing ----------

    def sign(self, data: str) -> str:
        return hmac.new(self.config.hash_secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha512).hexdigest()

    def payment_params(self, order_id: str, amount, order_info: str, ip_address: str,
                       bank_code: str | None = None, language: str = "vn") -> dict:
        params = {
            "vnp_Version": VERSION,
            "vnp_Command": COMMAND,
            "vnp_TmnCode": self.config.tmn_code,
            "vnp_Amount": self.to_vnd(amount) * 100,
            "vnp_CurrCode": CURRENCY,
            "vnp_TxnRef": order_id,
            "vnp_OrderInfo": order_info,
            "vnp_OrderType": ORDER_TYPE,
            "vnp_Locale": language or "vn",
            "vnp_ReturnUrl": self.config.return_url,
            "vnp_IpAddr": ip_address,
            "vnp_CreateDate": self._clock().strftime("%Y%m%d%H%M%S"),
        }
        if bank_code:
            params["vnp_BankCode"] = bank_code
        return params

    def build_payment_url(self, order_id: str, amount, order_info: str, ip_address: str,
                          bank_code: str | None = None, language: str = "vn") -> str:
        data = canonical_query(self.payment_params(order_id, amount, order_info, ip_address, bank_code, language))
        return f"{self.config.url}?{data}&vnp_SecureHash={self.sign(data)}"

    # ---------- verification ----------

    def verify(self, callback: VNPayCallback | Mapping[str, str]) -> VNPayResult:
        """Verify parsed callback parameters by re-encoding them canonically."""
        if not isinstance(callback, VNPayCallback):
            callback = VNPayCallback.model_validate(dict(callback))
        data = canonical_query(callback.signed_fields())
        return self._result(data, callback)

    def verify_raw(self, raw_query: str) -> VNPayResult:
        """
        Verify the untouched query string, keeping the gateway's own encoding.

        Pairs are sorted as whole ``key=value`` strings and rejoined verbatim.
        """
        raw_query = raw_query.lstrip("?")
        pairs = [p for p in raw_query.split("&") if p and not p.startswith(HASH_KEYS[0])]
        data = "&".join(sorted(pairs))
        callback = VNPayCallback.model_validate(dict(parse_qsl(raw_query, keep_blank_values=True)))
        return self._result(data, callback)

    def _result(self, data: str, cb: VNPayCallback) -> VNPayResult:
        expected = self.sign(data)
        if not hmac.compare_digest(expected.encode("utf-8"), cb.vnp_SecureHash.encode("utf-8")):
            logger.warning("vnpay signature mismatch for txn_ref=%s", cb.vnp_TxnRef)
            return VNPayResult(
                signature_valid=False, success=False, code=INVALID_SIGNATURE,
                message="Invalid signature", order_id=cb.vnp_TxnRef,
            )

        try:
            amount_vnd = Decimal(cb.vnp_Amount) / 100
        except InvalidOperation:
            amount_vnd = None
        amount = self.to_display(amount_vnd) if amount_vnd is not None else None

        ok = cb.vnp_ResponseCode == SUCCESS and cb.vnp_TransactionStatus == SUCCESS
        return VNPayResult(
            signature_valid=True,
            success=ok,
            code=SUCCESS if ok else (cb.vnp_ResponseCode or "99"),
            message="Payment successful" if ok else response_message(cb.vnp_ResponseCode),
            order_id=cb.vnp_TxnRef,
            amount=amount,
            amount_vnd=amount_vnd,
            transaction_no=cb.vnp_TransactionNo,
            transaction_status=cb.vnp_TransactionStatus,
            response_code=cb.vnp_ResponseCode,
            bank_code=cb.vnp_BankCode,
            bank_tran_no=cb.vnp_BankTranNo,
            card_type=cb.vnp_CardType,
            pay_date=cb.vnp_PayDate,
        )
