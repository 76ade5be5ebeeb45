from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typing import List

from qrdine.db import get_db
from qrdine.deps import require_auth, get_vnpay_signer, get_reconciler
from qrdine.models.core import PaymentMethod
from qrdine.schemas.orders import PaymentOut
from qrdine.schemas.payments import (
    PaymentIn, ConfirmIn, VNPayCreateIn, VNPayCreateOut, VNPayReturnIn, VNPayCallback, IpnResponse,
)
from qrdine.services import queries
from qrdine.services.payments import PaymentReconciler, create_payment, IPN_BAD_INPUT
from qrdine.services.vnpay import VNPaySigner

router = APIRouter(prefix="/payments", tags=["payments"])


def _client_ip(request: Request) -> str:
    fwd = request.headers.get("X-Forwarded-For")
    if fwd:
        return fwd.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


@router.post("/", response_model=PaymentOut, status_code=201)
def create(body: PaymentIn, db: Session = Depends(get_db)):
    return create_payment(db, body)


@router.post("/{payment_id}/confirm")
def confirm(
    payment_id: str,
    body: ConfirmIn | None = None,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    payment, outcome = reconciler.confirm_payment(db, payment_id, sub, reason=body.reason if body else None)
    return {
        "payment": PaymentOut.model_validate(payment),
        "outcome": outcome.value,
    }


@router.get("/order/{order_id}", response_model=List[PaymentOut])
def by_order(order_id: str, db: Session = Depends(get_db)):
    return queries.payments_for_order(db, order_id)


# ---------- VNPay ----------

@router.post("/vnpay/create", response_model=VNPayCreateOut)
def vnpay_create(
    body: VNPayCreateIn,
    request: Request,
    db: Session = Depends(get_db),
    signer: VNPaySigner = Depends(get_vnpay_signer),
):
    """Open a PENDING VNPAY payment for the order total and hand back the signed redirect URL."""
    order = queries.get_order(db, body.order_id)
    if order.total_amount <= 0:
        raise HTTPException(400, detail="order has nothing to pay")
    payment = create_payment(
        db, PaymentIn(order_id=order.id, amount=order.total_amount, method=PaymentMethod.VNPAY.value)
    )
    url = signer.build_payment_url(
        order_id=order.id,
        amount=order.total_amount,
        order_info=body.order_info or f"Thanh toan don hang {order.order_number}",
        ip_address=_client_ip(request),
        bank_code=body.bank_code,
        language=body.language,
    )
    return VNPayCreateOut(payment_id=payment.id, payment_url=url)


@router.post("/vnpay-return")
def vnpay_return_raw(
    body: VNPayReturnIn,
    db: Session = Depends(get_db),
    signer: VNPaySigner = Depends(get_vnpay_signer),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Return flow with the untouched query string, so the gateway's own encoding is what gets hashed."""
    try:
        result = signer.verify_raw(body.raw_query)
    except ValidationError:
        raise HTTPException(400, detail="missing or unexpected VNPay parameters")
    return reconciler.handle_return(db, result)


@router.get("/vnpay-return")
def vnpay_return(
    request: Request,
    db: Session = Depends(get_db),
    signer: VNPaySigner = Depends(get_vnpay_signer),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    try:
        callback = VNPayCallback.model_validate(dict(request.query_params))
    except ValidationError:
        raise HTTPException(400, detail="missing or unexpected VNPay parameters")
    return reconciler.handle_return(db, signer.verify(callback))


@router.get("/vnpay-ipn", response_model=IpnResponse)
def vnpay_ipn(
    request: Request,
    db: Session = Depends(get_db),
    signer: VNPaySigner = Depends(get_vnpay_signer),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Server-to-server notification. Always 200; the verdict is in RspCode."""
    try:
        callback = VNPayCallback.model_validate(dict(request.query_params))
    except ValidationError:
        code, message = IPN_BAD_INPUT
        return {"RspCode": code, "Message": message}
    return reconciler.handle_ipn(db, signer.verify(callback))
