from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import CategoryCycleError
from app.core.logging import configure_logging

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(
        "Application started",
        project=settings.PROJECT_NAME,
        environment=settings.ENVIRONMENT,
    )
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CategoryCycleError)
async def category_cycle_handler(request: Request, exc: CategoryCycleError):
    logger.error(
        "Category tree is inconsistent",
        path=request.url.path,
        category_id=exc.category_id,
        chain=exc.chain,
    )
    return JSONResponse(status_code=409, content={"detail": str(exc)})


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}
