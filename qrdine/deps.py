from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from qrdine.config import settings
from qrdine.services.billing import flat_rate_tax
from qrdine.services.events import event_bus
from qrdine.services.ordering import OrderTransactionManager
from qrdine.services.payments import PaymentReconciler
from qrdine.services.vnpay import VNPayConfig, VNPaySigner
from qrdine.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials)
        return data["sub"]
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

# Services are built once from settings and injected; tests swap them via dependency_overrides.

@lru_cache
def get_vnpay_signer() -> VNPaySigner:
    return VNPaySigner(VNPayConfig.from_settings(settings))

@lru_cache
def get_order_manager() -> OrderTransactionManager:
    return OrderTransactionManager(tax_policy=flat_rate_tax(settings.TAX_RATE), events=event_bus)

def get_reconciler(signer: VNPaySigner = Depends(get_vnpay_signer)) -> PaymentReconciler:
    return PaymentReconciler(signer=signer, events=event_bus)
