from fastapi import FastAPI, APIRouter, HTTPException, Request
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import os
import logging

from routes.auth_routes import router as auth_router
from routes.classes_routes import router as classes_router
from routes.quiz_routes import router as quiz_router
from routes.assignment_routes import router as assignment_router
from routes.candidate_routes import router as candidate_router
from services.auth_service import purge_expired_sessions
from services.submission_events import submission_consumer
from utils.database import client, db
from version import BUILD_VERSION

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Application starting up...")
    submission_consumer.start()
    yield
    logger.info("Application shutting down...")
    await submission_consumer.stop()
    client.close()

app = FastAPI(lifespan=lifespan)
api_router = APIRouter(prefix="/api")


def health_payload():
    return {
        "status": "healthy",
        "service": "theodoraq-assessment",
        "version": BUILD_VERSION
    }

# Health check endpoint (required for deployment)
@app.get("/health")
async def health_check():
    return health_payload()

@api_router.get("/health")
async def api_health_check():
    return health_payload()

# Background job endpoint for session cleanup
@app.post("/cron/purge-expired-sessions")
async def cron_purge_expired_sessions(request: Request):
    """Delete expired login sessions. Call this periodically."""
    cron_secret = os.environ.get('CRON_SECRET')
    if cron_secret:
        provided_secret = request.headers.get('X-Cron-Secret')
        if provided_secret != cron_secret:
            raise HTTPException(status_code=403, detail="Unauthorized")
    
    count = await purge_expired_sessions(db)
    logger.info(f"Purged {count} expired session(s)")
    return {"purged_count": count}

@app.get("/")
async def root():
    return {"message": "TheodoraQ Assessment API", "status": "running"}


api_router.include_router(auth_router)
api_router.include_router(classes_router)
api_router.include_router(quiz_router)
api_router.include_router(assignment_router)
api_router.include_router(candidate_router)

app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
