import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studytracker.config import FRONTEND_URL
from studytracker.database import init_db
from studytracker.routes.analytics_routes import router as analytics_router
from studytracker.routes.auth_routes import router as auth_router
from studytracker.routes.session_routes import router as session_router
from studytracker.routes.subject_routes import router as subject_router

logger = logging.getLogger(__name__)

# Initialize db configuration
try:
    init_db()
except Exception as e:
    logger.error(f"Database init skipped or failed: {e}")

app = FastAPI(title="StudyTracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters are a 400, not FastAPI's default 422."""
    return JSONResponse(status_code=400, content={"errors": jsonable_encoder(exc.errors())})


@app.get("/api/health")
async def health():
    return {
        "status": "OK",
        "message": "StudyTracker API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(auth_router)
app.include_router(subject_router)
app.include_router(session_router)
app.include_router(analytics_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("studytracker.main:app", host="0.0.0.0", port=8000, reload=True)
