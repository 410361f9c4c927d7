"""FastAPI application factory wiring routes, services, and shared state."""
import asyncio
import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from user_management import config
from user_management.database import Base, engine as default_engine, make_session_factory
from user_management.email_service import Mailer, NotificationDispatcher
from user_management.errors import AccountError
from user_management.limiter import limiter
from user_management.models import user_model  # noqa: F401 - register the users table
from user_management.routes import auth, health, users

LOGGER = logging.getLogger(__name__)


def create_app(
    engine: Optional[AsyncEngine] = None,
    mailer: Optional[Mailer] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    app = FastAPI(title="User Management API", version="1.0.0")

    # Collaborators are injected so tests can swap the database and the mail relay
    app.state.engine = engine or default_engine
    app.state.session_factory = make_session_factory(app.state.engine)
    app.state.dispatcher = dispatcher or NotificationDispatcher(mailer or Mailer())

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api/auth")
    app.include_router(users.router, prefix="/api/users")
    app.include_router(health.router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        LOGGER.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed)
        return response

    @app.exception_handler(AccountError)
    async def account_error_handler(request: Request, exc: AccountError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Too many requests. Please slow down."},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        LOGGER.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        content = {"detail": "Internal server error"}
        if config.is_development():
            content["message"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)

    @app.on_event("startup")
    async def on_startup():
        # Refuse to serve without a real signing key
        config.get_secret_key()

        # Tiny retry so a momentary DB disconnect doesn't crash the app.
        for attempt in range(2):
            try:
                async with app.state.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                break
            except Exception as e:
                if attempt == 0:
                    LOGGER.warning("DB init failed, retrying once: %r", e)
                    await asyncio.sleep(0.5)
                else:
                    LOGGER.error("Skipping DB init due to error: %r", e)

        app.state.dispatcher.start()
        LOGGER.info("User Management API started (environment=%s)", config.ENVIRONMENT)

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.dispatcher.stop()

    return app


app = create_app()


def serve() -> None:
    uvicorn.run("user_management.main:app", host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
