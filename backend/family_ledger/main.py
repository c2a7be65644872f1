"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from family_ledger.config import settings
from family_ledger.database import Base, engine
from family_ledger.errors import ConflictError, ForbiddenError, LedgerError, NotFoundError, ValidationError

# Import routers
from family_ledger.routers import users, family, events, notifications

# Import all models so Base.metadata knows about them
from family_ledger.models.user import User                  # noqa: F401
from family_ledger.models.grant import Grant                # noqa: F401
from family_ledger.models.category import Category          # noqa: F401
from family_ledger.models.event import Event                # noqa: F401
from family_ledger.models.transaction import Transaction    # noqa: F401
from family_ledger.models.notification import Notification  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Family Booking Ledger",
    description="Event bookings with delegated family access and an append-only payment ledger",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    ValidationError: 422,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
}


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    body = {"error": {"code": exc.code, "message": exc.message}}
    if isinstance(exc, ValidationError) and exc.field:
        body["error"]["field"] = exc.field
    return JSONResponse(status_code=status_code, content=body)


# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(family.router, prefix="/api/family", tags=["Family"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
