import hashlib
from contextlib import asynccontextmanager
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException
from .config import settings
from .logging import setup_logging
from .api.routes import router as api_router
from .pricing.service import PriceService
from .scheduler import build_scheduler, schedule_jobs
from .services.vision import VisionExtractor

_log = structlog.get_logger()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _client_key(request: Request) -> str:
    # limits are tracked per client without keeping raw IP addresses
    return hashlib.sha256(get_remote_address(request).encode()).hexdigest()[:16]


def create_app(
    prices: PriceService | None = None,
    vision: VisionExtractor | None = None,
    start_scheduler: bool | None = None,
    rate_limit: str | None = None,
) -> FastAPI:
    prices = prices or PriceService.from_settings(settings)
    vision = vision or VisionExtractor(settings.anthropic_api_key, model=settings.vision_model)
    if start_scheduler is None:
        start_scheduler = bool(settings.scheduler_enabled)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sched = None
        if start_scheduler:
            sched = schedule_jobs(prices, build_scheduler())
        _log.info("stack_tracker_api_started", scheduler=bool(sched), image_storage="disabled")
        try:
            yield
        finally:
            if sched is not None:
                sched.shutdown(wait=False)

    app = FastAPI(title="stack-tracker-api", lifespan=lifespan)
    app.state.prices = prices
    app.state.vision = vision
    app.state.limiter = Limiter(
        key_func=_client_key,
        application_limits=[rate_limit or settings.rate_limit],
        enabled=bool(settings.rate_limit_enabled),
    )
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error(404, "Endpoint not found")
        return _error(exc.status_code, str(exc.detail))

    # SlowAPIMiddleware calls this handler synchronously
    def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        _log.warning("rate_limited", path=request.url.path, limit=str(exc.detail))
        return _error(429, "Too many requests. Please try again later.")

    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request")

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        _log.exception("unhandled_error", path=request.url.path)
        return _error(500, "An error occurred")

    app.include_router(api_router)
    return app


setup_logging()
app = create_app()
