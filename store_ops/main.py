#main.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .api.routes import router as api_router
from .config import settings
from .core.errors import StoreOpsError, ValidationError
from .db import engine, Base
from . import models

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting..")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    yield
    logger.info("Shutting..")

app = FastAPI(
    title="Store Operations Service",
    version="0.1.0",
    description=(
        "Store availability engine: effective open/closed status reconciled "
        "against weekly operating hours and merchant overrides"
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api", tags=["store-operations"])


@app.exception_handler(StoreOpsError)
async def store_ops_error_handler(request: Request, exc: StoreOpsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else "Invalid request body"
    return JSONResponse(status_code=400, content=ValidationError(message).to_dict())


@app.get("/")
async def root():
    return {
        "message": "Store Operations API running",
        "version": "0.1.0",
        "endpoints": {
            "store_operations": "/api/store-operations",
            "store_status_log": "/api/store-status-log",
            "operating_hours": "/api/operating-hours",
            "docs": "/docs"
        }
    }

@app.get("/health")
async def health_check():
    """Health check"""
    return {"status": "healthy"}
