import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import (
    models,  # noqa: F401
    models_appointment,  # noqa: F401
    models_contract,  # noqa: F401
    models_invoice,  # noqa: F401
    models_reservation,  # noqa: F401
)
from .config import CORS_ORIGINS
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.contracts.router import router as contracts_router
from .domain.invoices.router import router as invoices_router
from .domain.payments.router import router as payments_router
from .domain.reservations.router import router as reservations_router
from .domain.users.router import router as users_router
from .errors import EngineError
from .routes.status_automation import router as status_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="SpaceBroker API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Render domain errors as {"error": {"kind", "code", "message"}}"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.kind}/{exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.kind}/{exc.code}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


logger.info(f"CORS allowed origins: {CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(users_router)
app.include_router(reservations_router)
app.include_router(payments_router)
app.include_router(appointments_router)
app.include_router(contracts_router)
app.include_router(invoices_router)
app.include_router(status_router)


@app.get("/")
def root():
    return {"message": "SpaceBroker API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
