'''
FastAPI application: lifespan, CORS, error rendering and routers.
'''
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from .database.engine import create_db_engine_and_session_factory, dispose_db_engine
from .common.exceptions import SchedulingError
from .common.logger import log
from .common.config import settings
from .api import auth, lessons, substitutions

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    # --- On App Startup ---
    log.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    create_db_engine_and_session_factory()

    yield # --- Application is now running ---

    # --- On App Shutdown ---
    if not settings.TEST_MODE:
        log.info("Application lifespan shutdown...")
        await dispose_db_engine()
    else:
        log.info("Skipping database engine disposal in TEST_MODE.")


# ---- CREATING THE APP ----
app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# --- Add CORS Middleware ---
origins = [
    # local frontend during development
    "http://localhost:3000",
]
origins.extend(settings.BACKEND_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error rendering ---
@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Renders every scheduling error as {"error": {"code", "message", "details"}}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

@app.get("/")
async def health_check():
    return {"status": "ok", "message": f"{settings.APP_NAME} is running"}

app.include_router(auth.router)
app.include_router(lessons.router)
app.include_router(substitutions.router)
