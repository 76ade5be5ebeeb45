from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, Literal

PaymentMethodLiteral = Literal["CASH", "CARD", "VNPAY"]


class PaymentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    order_id: str = Field(alias="orderId")
    amount: Decimal = Field(gt=0, decimal_places=2)
    method: PaymentMethodLiteral


class ConfirmIn(BaseModel):
    reason: Optional[str] = None


class VNPayCreateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    order_id: str = Field(alias="orderId")
    order_info: Optional[str] = Field(default=None, alias="orderInfo", max_length=255)
    bank_code: Optional[str] = Field(default=None, alias="bankCode")
    language: Literal["vn", "en"] = "vn"


class VNPayCreateOut(BaseModel):
    payment_id: str
    payment_url: str


class VNPayReturnIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    raw_query: str = Field(alias="rawQuery", min_length=1)


class VNPayCallback(BaseModel):
    """
    Parameters VNPay sends back on the return URL and to the IPN endpoint.

    Values stay exactly as delivered (strings) because the signature is computed
    over them; conversion to domain types happens in the signer. Unknown keys
    are kept for the same reason, but only ``vnp_`` keys are accepted.
    """
    model_config = ConfigDict(extra="allow")

    vnp_TmnCode: Optional[str] = None
    vnp_Amount: str
    vnp_TxnRef: str
    vnp_OrderInfo: Optional[str] = None
    vnp_ResponseCode: Optional[str] = None
    vnp_TransactionStatus: Optional[str] = None
    vnp_TransactionNo: Optional[str] = None
    vnp_BankCode: Optional[str] = None
    vnp_BankTranNo: Optional[str] = None
    vnp_CardType: Optional[str] = None
    vnp_PayDate: Optional[str] = None
    vnp_SecureHash: str
    vnp_SecureHashType: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _only_gateway_keys(cls, data):
        if isinstance(data, dict):
            stray = [k for k in data if not str(k).startswith("vnp_")]
            if stray:
                raise ValueError(f"unexpected parameters: {', '.join(sorted(stray))}")
        return data

    def signed_fields(self) -> dict[str, str]:
        """Every received parameter except the hash pair, as delivered."""
        data = self.model_dump(exclude_none=True)
        data.pop("vnp_SecureHash", None)
        data.pop("vnp_SecureHashType", None)
        return {k: str(v) for k, v in data.items()}


class IpnResponse(BaseModel):
    RspCode: str
    Message: str
