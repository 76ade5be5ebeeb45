import jwt
from datetime import datetime, timedelta, timezone
from qrdine.config import settings

def create_token(sub: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.JWT_EXP_MIN)
    payload = {"sub": sub, "iss": settings.JWT_ISS, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")

def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.APP_SECRET, algorithms=["HS256"], options={"verify_aud": False})
