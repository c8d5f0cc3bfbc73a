"""
Application factory for the course shop API
"""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from . import __version__
from .config import Config, load_config
from .db import create_database_engine, create_session_factory, init_db
from .exceptions import general_exception_handler, register_exception_handlers
from .logging_config import RequestIDMiddleware, setup_logging
from .middleware import RateLimitMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from .services.billing_gateway import PaymentGateway, create_payment_gateway
from .services.email_provider import EmailProvider, create_email_provider
from .services.file_access import FileAccessService, create_file_access_service
from .services.identity_provider import IdentityProvider, create_identity_provider
from .services.redis_cache import get_redis_client
from . import course_routes, payment_routes, user_routes

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Config] = None,
    *,
    email_provider: Optional[EmailProvider] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    file_access: Optional[FileAccessService] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    """
    Build the API

    External collaborators default to the ones the configuration describes
    and can be passed in to replace them.
    """
    config = config or load_config()
    setup_logging(env=config.ENV, log_level=config.LOG_LEVEL)

    app = FastAPI(title="Course Shop API", version=__version__)

    engine = create_database_engine(config.DATABASE_URL)
    init_db(engine)

    app.state.config = config
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.email_provider = email_provider or create_email_provider(config)
    app.state.payment_gateway = payment_gateway or create_payment_gateway(config)
    app.state.file_access = file_access or create_file_access_service(config)
    app.state.identity_provider = identity_provider or create_identity_provider(config)

    # Last added runs first
    app.add_middleware(RequestSizeLimitMiddleware, max_request_bytes=config.MAX_REQUEST_BYTES)
    app.add_middleware(
        RateLimitMiddleware,
        limit=config.MAX_REQUESTS_PER_HOUR,
        window_seconds=3600,
        prefix="/api",
        redis_client=get_redis_client(config.REDIS_URL),
        trust_proxy=config.TRUST_PROXY,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=not config.is_dev)
    app.add_middleware(GZipMiddleware, minimum_size=config.GZIP_MIN_BYTES)
    app.add_middleware(RequestIDMiddleware, error_handler=general_exception_handler)

    register_exception_handlers(app)

    # Webhook before the course routes so /payment is not read as a course id
    app.include_router(payment_routes.router)
    app.include_router(course_routes.router)
    app.include_router(user_routes.router)

    @app.get("/")
    async def root():
        return {"message": "Course Shop API", "status": "running"}

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "course-shop", "version": __version__}

    logger.info(f"Course shop API ready (env={config.ENV})")
    return app
