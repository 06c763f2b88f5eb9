import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from giftbox.api import auth, customers, inventory, orders, production, quality
from giftbox.config import settings
from giftbox.database import SessionLocal, init_db
from giftbox.exceptions import ConflictError, GiftboxError, InternalError, InvalidArgumentError
from giftbox.services.auth_service import ensure_default_admin

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()
    logger.info("%s started", settings.APP_NAME)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Gift-box orders, production board, quality gate and materials ledger",
    version="1.0.0",
    lifespan=lifespan,
)


def _error_response(exc: GiftboxError) -> JSONResponse:
    data = dict(exc.data)
    if isinstance(exc, ConflictError) and exc.existing is not None:
        data["existing"] = exc.existing
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "data": jsonable_encoder(data)},
    )


@app.exception_handler(GiftboxError)
async def giftbox_error_handler(request: Request, exc: GiftboxError):
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Rejected input is left out: it may hold NaN, which JSON cannot carry
    errors = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    return _error_response(InvalidArgumentError("Request validation failed", errors=errors))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(InternalError("Database error"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so clients can parse the error."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(InternalError("Internal server error"))


app.include_router(auth.router, prefix="/api/v1")
app.include_router(customers.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")
app.include_router(production.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(quality.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}
