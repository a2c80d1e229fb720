from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pymongo.errors import PyMongoError
from database.mongodb import db
from config import get_settings
from routes import auth, clients, quotations, invoices, settings as settings_routes
from services.errors import InvoicingError
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the app"""
    # Startup
    await db.connect(settings.mongo_url, settings.db_name)
    logger.info("InvoiceFlow API started")
    yield
    # Shutdown
    await db.disconnect()
    logger.info("InvoiceFlow API stopped")

# Create FastAPI app
app = FastAPI(
    title="InvoiceFlow API",
    description="Quotations, invoices and payments with consistent numbering",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _server_error_detail(message: str) -> str:
    if get_settings().is_production:
        return "Internal server error"
    return message


@app.exception_handler(InvoicingError)
async def invoicing_error_handler(request: Request, exc: InvoicingError):
    """Map the error taxonomy to HTTP responses"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.__class__.__name__}: {exc.message}")
        detail = _server_error_detail(exc.message)
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
        detail = exc.message
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


@app.exception_handler(PyMongoError)
async def persistence_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"{request.method} {request.url.path} database error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": _server_error_detail(f"Database error: {exc}")}
    )


# Include routers
app.include_router(auth.router)
app.include_router(clients.router)
app.include_router(quotations.router)
app.include_router(invoices.router)
app.include_router(settings_routes.router)

@app.get("/")
async def root():
    return {
        "message": "InvoiceFlow API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/api")
async def api_root():
    return {
        "message": "InvoiceFlow API",
        "endpoints": {
            "clients": "/api/clients",
            "quotations": "/api/quotations",
            "invoices": "/api/invoices",
            "settings": "/api/settings"
        }
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
