from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from riskreg.api import api_router
from riskreg.errors import RegisterError
from riskreg.logging_config import configure_logging, get_logger
from riskreg.middleware import RequestLoggingMiddleware
from riskreg.registry import Registry, build_registry
from riskreg.settings import get_settings

logger = get_logger(name=__name__)


def create_app(registry: Optional[Registry] = None) -> FastAPI:
    """Build the API around a registry (a fresh one from settings by default)."""
    settings = registry.settings if registry is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.registry.close()
        logger.info("Risk register stopped")

    app = FastAPI(title="Risk Register", lifespan=lifespan)
    app.state.registry = registry or build_registry(settings)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegisterError)
    async def register_error_handler(request: Request, error: RegisterError) -> JSONResponse:
        if error.status >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, error.message)
        return JSONResponse(status_code=error.status, content=error.to_payload())

    app.include_router(api_router)
    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    settings = get_settings()
    uvicorn.run(create_app(), host=settings.uvicorn_host, port=settings.uvicorn_port)
