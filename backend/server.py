"""
Work Request Intake and Tracking Service
FastAPI backend
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from pathlib import Path
import logging

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from database import postgres_settings

# ==================== Logging Configuration ====================
logging.basicConfig(
    level=postgres_settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(
    title="Work Request Service",
    description="Lot transfer, shipment, scrap and sampling request intake with status tracking",
    version="1.0.0"
)


@app.get("/api/health")
async def health_check():
    """Liveness probe"""
    return {"ok": True}


@app.exception_handler(RequestValidationError)
async def body_validation_handler(request: Request, exc: RequestValidationError):
    """Report unparseable bodies in the same shape as payload validation failures"""
    issues = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request body", "issues": issues})


# ==================== Routes ====================
from routes.requests_routes import requests_router

app.include_router(requests_router)

# ==================== CORS Configuration ====================
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=postgres_settings.cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Startup & Shutdown Events ====================
@app.on_event("startup")
async def startup_db_client():
    """Create database tables on startup"""
    logger.info("Starting Work Request Service...")

    from database import init_postgres_db
    await init_postgres_db()

    logger.info("Database initialized successfully")


@app.on_event("shutdown")
async def shutdown_db_client():
    """Close database connections on shutdown"""
    logger.info("Shutting down...")

    from database import close_postgres_db
    await close_postgres_db()

    logger.info("Database connections closed")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host=postgres_settings.host, port=postgres_settings.port)
