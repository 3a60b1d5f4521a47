import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from core.config import settings
from core.database import init_db
from core.exceptions import BusinessError
from core.limiter import init_redis

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from routers import consultations, prescriptions, rtc, workflow

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting Remote Consultation API Server...")
    init_db()
    redis_conn = await init_redis()
    if redis_conn:
        logger.info("✅ Rate limiter initialized.")
    else:
        logger.warning("⚠️ Rate limiting will be disabled (Redis unavailable).")
    yield
    # Shutdown
    logger.info("🛑 Shutting down Server...")
    if redis_conn:
        await redis_conn.aclose()

app = FastAPI(
    title="Remote Consultation API",
    description="Consultation and prescription workflow with real-time session credentials",
    version="1.0.0",
    lifespan=lifespan
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:5173",
        "http://localhost:3000"
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(consultations.router)
app.include_router(prescriptions.router)
app.include_router(rtc.router)
app.include_router(workflow.router)

@app.exception_handler(BusinessError)
async def business_exception_handler(request: Request, exc: BusinessError):
    logger.info(f"Business error on {request.url.path}: {exc.error_code.name} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.error_code.code, "message": exc.error_code.message}
    )

# Validation exception handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error_details = [{"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]} for e in errors]
    return JSONResponse(
        status_code=422,
        content={"detail": error_details, "message": "Validation error"}
    )

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global Error handling {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error.", "message": str(exc) if settings.ENVIRONMENT != "production" else "An unexpected error occurred."}
    )

@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "api", "version": "1.0.0"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.SERVER_HOST, port=settings.SERVER_PORT, reload=(settings.ENVIRONMENT=="development"))
