import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.database import connect_to_mongo, close_mongo_connection
from .core.errors import SignflowError
from .core.logging_config import setup_logging
from .api.api import api_router
from .api.deps import ServiceContainer, build_container

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.GRAYLOG_HOST, settings.GRAYLOG_PORT)
    if settings.ENTITY_STORE == "mongo":
        await connect_to_mongo()
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} ready")

    yield

    # Let queued signer notifications go out before exiting
    await app.state.container.dispatcher.drain()
    if settings.ENTITY_STORE == "mongo":
        await close_mongo_connection()


async def signflow_error_handler(request: Request, exc: SignflowError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__}
    )


def create_app(container: ServiceContainer = None) -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan
    )
    app.state.container = container or build_container(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SignflowError, signflow_error_handler)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION
        }

    # Include API routes
    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
