import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import Settings, settings
from app.core.exceptions import register_exception_handlers
from app.database.supabase_client import create_supabase
from app.modules.auth.service import ClerkIdentityProvider, TokenVerifier
from app.modules.users import routes as users_routes
from app.modules.rides import routes as rides_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


def create_app(config: Settings) -> FastAPI:
    limiter = Limiter(key_func=get_remote_address, default_limits=[config.rate_limit])
    app = FastAPI(
        title=config.app_name,
        debug=config.debug,
        redirect_slashes=False,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    # adds the innermost middleware, so it goes before the others
    register_exception_handlers(app)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rides_routes.router)
    app.include_router(users_routes.router)

    @app.on_event("startup")
    async def startup_event():
        # Built once; handlers receive them through Depends and never mutate them
        app.state.supabase = create_supabase(config)
        app.state.identity_provider = ClerkIdentityProvider.from_settings(config)
        app.state.token_verifier = TokenVerifier.from_settings(config)
        logger.info("Application startup (%s)", config.environment)

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Application shutdown")

    @app.get("/health")
    @limiter.exempt
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    @limiter.exempt
    async def ready():
        return {"status": "ready"}

    return app


app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.debug)
