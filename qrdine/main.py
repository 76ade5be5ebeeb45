# qrdine/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from qrdine.middleware import RequestIdMiddleware
from qrdine.db import Base, engine
from qrdine.config import settings
from qrdine.services.errors import OrderingError
from qrdine.util.logging import configure_logging
import qrdine.models  # noqa: F401  (register tables)

from qrdine.routers import orders, payments

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("qrdine")

app = FastAPI(title="QRDine API", version="0.1.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

@app.exception_handler(OrderingError)
def ordering_error(request: Request, exc: OrderingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

@app.exception_handler(SQLAlchemyError)
def storage_error(request: Request, exc: SQLAlchemyError):
    logger.exception("storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": "storage unavailable, please retry", "code": "storage_unavailable"})

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders.router)
app.include_router(payments.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
