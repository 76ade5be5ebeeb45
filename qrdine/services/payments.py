"""
Payment records and their PENDING -> PAID transition.

``PaymentReconciler`` is the only writer of ``Payment.status = PAID`` and
``Order.payment_status = PAID``. Both rows change in one unit of work through
conditional UPDATEs, so a repeated or concurrent confirmation finds zero rows
to change and reports ``ALREADY_CONFIRMED`` instead of paying twice.
"""
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Callable

from sqlalchemy import update
from sqlalchemy.orm import Session

from qrdine.db import unit_of_work
from qrdine.models.common import utcnow
from qrdine.models.core import Order, Payment, PaymentMethod, PaymentStatus, OrderStatus
from qrdine.schemas.payments import PaymentIn
from qrdine.services import events as ev
from qrdine.services.errors import NotFound, OrderLocked
from qrdine.services.queries import latest_payment
from qrdine.services.vnpay import VNPaySigner, VNPayResult
from qrdine.util.audit import audit

logger = logging.getLogger("qrdine.payments")


class ReconcileOutcome(PyEnum):
    CONFIRMED = "CONFIRMED"
    ALREADY_CONFIRMED = "ALREADY_CONFIRMED"
    NOT_FOUND = "NOT_FOUND"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    DECLINED = "DECLINED"


# IPN answer per outcome; the gateway stops retrying on anything but a transport failure / 99
IPN_REPLIES = {
    ReconcileOutcome.CONFIRMED: ("00", "Confirm Success"),
    ReconcileOutcome.DECLINED: ("00", "Confirm Success"),
    ReconcileOutcome.ALREADY_CONFIRMED: ("02", "Order already confirmed"),
    ReconcileOutcome.NOT_FOUND: ("01", "Order not found"),
    ReconcileOutcome.AMOUNT_MISMATCH: ("04", "Invalid amount"),
}
IPN_INVALID_SIGNATURE = ("97", "Invalid signature")
IPN_BAD_INPUT = ("99", "Input data required")
IPN_UNKNOWN_ERROR = ("99", "Unknown error")


def create_payment(db: Session, body: PaymentIn) -> Payment:
    with unit_of_work(db):
        order = db.get(Order, body.order_id)
        if not order:
            raise NotFound("Order not found")
        if order.payment_status == PaymentStatus.PAID:
            raise OrderLocked(f"Order {order.order_number} is already paid")
        if order.status == OrderStatus.CANCELLED:
            raise OrderLocked(f"Order {order.order_number} is cancelled")
        p = Payment(
            order_id=order.id,
            amount=body.amount,
            method=PaymentMethod(body.method),
            status=PaymentStatus.PENDING,
        )
        db.add(p)
    logger.info("payment %s created for order %s (%s %s)", p.id, order.order_number, p.method.value, p.amount)
    return p


class PaymentReconciler:
    def __init__(self, signer: VNPaySigner | None = None, events: ev.EventBus = ev.event_bus,
                 clock: Callable[[], datetime] = utcnow):
        self.signer = signer
        self.events = events
        self.clock = clock

    def _mark_paid(self, db: Session, payment: Payment, transaction_id: str | None) -> bool:
        """Flip payment and order to PAID; False if someone else already did."""
        res = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.PAID, paid_at=self.clock(), transaction_id=transaction_id)
        )
        if res.rowcount == 0:
            return False
        db.execute(
            update(Order)
            .where(Order.id == payment.order_id)
            .values(payment_status=PaymentStatus.PAID)
        )
        return True

    def _published(self, payment: Payment, transaction_id: str | None) -> None:
        self.events.publish(ev.PAYMENT_CONFIRMED, {
            "order_id": payment.order_id,
            "payment_id": payment.id,
            "method": payment.method.value,
            "amount": str(payment.amount),
            "transaction_id": transaction_id,
        })

    def confirm_gateway_payment(
        self,
        db: Session,
        order_id: str,
        transaction_id: str | None,
        method: PaymentMethod = PaymentMethod.VNPAY,
        amount_vnd: Decimal | None = None,
        paid: bool = True,
    ) -> ReconcileOutcome:
        """
        Settle the newest PENDING ``method`` payment of ``order_id``.

        ``paid=False`` (gateway declined) only locates the record; nothing is written.
        """
        with unit_of_work(db):
            order = db.get(Order, order_id)
            if not order:
                outcome = ReconcileOutcome.NOT_FOUND
            else:
                payment = latest_payment(db, order_id, method, PaymentStatus.PENDING)
                if order.payment_status == PaymentStatus.PAID:
                    outcome = ReconcileOutcome.ALREADY_CONFIRMED
                elif payment is None:
                    paid_one = latest_payment(db, order_id, method, PaymentStatus.PAID)
                    outcome = ReconcileOutcome.ALREADY_CONFIRMED if paid_one else ReconcileOutcome.NOT_FOUND
                elif amount_vnd is not None and self.signer and Decimal(self.signer.to_vnd(payment.amount)) != amount_vnd:
                    outcome = ReconcileOutcome.AMOUNT_MISMATCH
                elif not paid:
                    outcome = ReconcileOutcome.DECLINED
                elif self._mark_paid(db, payment, transaction_id):
                    outcome = ReconcileOutcome.CONFIRMED
                else:
                    outcome = ReconcileOutcome.ALREADY_CONFIRMED

        logger.info("reconcile order=%s txn=%s -> %s", order_id, transaction_id, outcome.value)
        if outcome == ReconcileOutcome.CONFIRMED:
            self._published(payment, transaction_id)
        return outcome

    def confirm_payment(self, db: Session, payment_id: str, actor_user_id: str,
                        reason: str | None = None) -> tuple[Payment, ReconcileOutcome]:
        """Staff confirmation of a cash/card payment by id."""
        with unit_of_work(db):
            payment = db.get(Payment, payment_id)
            if not payment:
                raise NotFound("Payment not found")
            order = db.get(Order, payment.order_id)
            if payment.status == PaymentStatus.PAID or order.payment_status == PaymentStatus.PAID:
                outcome = ReconcileOutcome.ALREADY_CONFIRMED
            elif self._mark_paid(db, payment, payment.transaction_id):
                outcome = ReconcileOutcome.CONFIRMED
                audit(db, actor_user_id, "Payment", payment.id, "CONFIRM",
                      before={"status": PaymentStatus.PENDING.value},
                      after={"status": PaymentStatus.PAID.value}, reason=reason)
            else:
                outcome = ReconcileOutcome.ALREADY_CONFIRMED

        db.refresh(payment)
        logger.info("manual confirm payment=%s by %s -> %s", payment_id, actor_user_id, outcome.value)
        if outcome == ReconcileOutcome.CONFIRMED:
            self._published(payment, payment.transaction_id)
        return payment, outcome

    # ---------- gateway entry points ----------

    def handle_return(self, db: Session, result: VNPayResult) -> dict:
        """Browser return: settle on a verified success, report the outcome either way."""
        body = result.to_dict()
        if result.signature_valid and result.success:
            outcome = self.confirm_gateway_payment(
                db, result.order_id, result.transaction_no, amount_vnd=result.amount_vnd,
            )
            body["reconcile"] = outcome.value
            if outcome not in (ReconcileOutcome.CONFIRMED, ReconcileOutcome.ALREADY_CONFIRMED):
                body["success"] = False
        return body

    def handle_ipn(self, db: Session, result: VNPayResult) -> dict:
        if not result.signature_valid:
            code, message = IPN_INVALID_SIGNATURE
            return {"RspCode": code, "Message": message}
        try:
            outcome = self.confirm_gateway_payment(
                db, result.order_id, result.transaction_no,
                amount_vnd=result.amount_vnd, paid=result.success,
            )
        except Exception:
            logger.exception("ipn reconcile failed for order %s", result.order_id)
            code, message = IPN_UNKNOWN_ERROR
            return {"RspCode": code, "Message": message}
        code, message = IPN_REPLIES[outcome]
        return {"RspCode": code, "Message": message}
