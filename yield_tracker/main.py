from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.exceptions import HTTPException as StarletteHTTPException

from yield_tracker.background import AlertScheduler
from yield_tracker.bot import YieldBot
from yield_tracker.clients.base import YieldSource
from yield_tracker.clients.registry import build_sources
from yield_tracker.clients.telegram import TelegramClient, TelegramError
from yield_tracker.config import Settings, get_settings
from yield_tracker.http import HttpClient
from yield_tracker.middleware.rate_limit import rate_limiter
from yield_tracker.models import ServiceStatus, WebhookRequest
from yield_tracker.protocols import PROTOCOLS
from yield_tracker.services.aggregator import Aggregator
from yield_tracker.services.alerts import AlertBook, AlertNotifier
from yield_tracker.services.cache import TTLCache
from yield_tracker.services.ranker import OpportunityRanker, summarize
from yield_tracker.tokens import SUPPORTED_SYMBOLS
from yield_tracker.utils.logging import setup_logging
from yield_tracker.utils.loki import loki_log

app = FastAPI(title="Solana Yield Tracker", version="1.0.0")

logger = logging.getLogger(__name__)

SETTINGS = get_settings()


@dataclass
class Services:
    settings: Settings
    http: HttpClient
    cache: TTLCache
    aggregator: Aggregator
    ranker: OpportunityRanker
    book: AlertBook
    telegram: TelegramClient
    bot: YieldBot
    scheduler: AlertScheduler


def build_services(
    settings: Settings,
    http: HttpClient | None = None,
    sources: Sequence[YieldSource] | None = None,
    cache: TTLCache | None = None,
) -> Services:
    http = http or HttpClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    cache = cache or TTLCache(default_ttl=settings.CACHE_TTL_SECONDS)
    if sources is None:
        sources = build_sources(settings, http, cache)
    aggregator = Aggregator(sources, cache)
    ranker = OpportunityRanker(aggregator, settings.FAVORED_PROTOCOL)
    book = AlertBook()
    telegram = TelegramClient(http, settings.TELEGRAM_BOT_TOKEN, api_base=settings.TELEGRAM_API_BASE)
    bot = YieldBot(book, aggregator, ranker, telegram, settings.FAVORED_PROTOCOL)
    notifier = AlertNotifier(book, aggregator, telegram, settings.FAVORED_PROTOCOL)
    scheduler = AlertScheduler(notifier, interval=settings.ALERT_INTERVAL_SECONDS)
    return Services(settings, http, cache, aggregator, ranker, book, telegram, bot, scheduler)


def _services() -> Services:
    services = getattr(app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ok(data: Any, **extra: Any) -> Dict[str, Any]:
    return {"success": True, **extra, "data": data, "timestamp": _now()}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, "timestamp": _now()})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    return _error(422, "Invalid request parameters")


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return _error(500, "Internal server error")


if SETTINGS.ENABLE_REDIS:
    @app.middleware("http")
    async def _rate_limit(request, call_next):
        redis = getattr(app.state, "redis", None)
        if redis is None:
            return await call_next(request)
        return await rate_limiter(request, call_next, redis, SETTINGS.RATE_LIMIT_PER_MINUTE)

if SETTINGS.LOKI_URL:
    @app.middleware("http")
    async def _loki_logger(request, call_next):
        response = await call_next(request)
        services = getattr(app.state, "services", None)
        if services is not None:
            await loki_log(
                services.http,
                "INFO",
                "request",
                extra={
                    "path": str(request.url.path),
                    "method": request.method,
                    "status": response.status_code,
                    "client_ip": request.client.host if request.client else None,
                },
            )
        return response


@app.on_event("startup")
async def startup_event() -> None:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    app.state.services = build_services(settings)
    app.state.redis = Redis.from_url(settings.REDIS_URL, decode_responses=True) if settings.ENABLE_REDIS else None
    if settings.alerts_enabled():
        await app.state.services.scheduler.start()
    logger.info(
        f"✅ Yield tracker ready – favored protocol: {settings.FAVORED_PROTOCOL}, "
        f"sources: {[s.name for s in app.state.services.aggregator.sources]}"
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    services: Optional[Services] = getattr(app.state, "services", None)
    if services is not None:
        await services.scheduler.stop()
        await services.http.aclose()
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        await redis.aclose()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/yields")
async def get_yields(token: Optional[str] = None, protocol: Optional[str] = None):
    aggregator = _services().aggregator
    if token:
        if token not in SUPPORTED_SYMBOLS:
            raise HTTPException(status_code=400, detail=f"Unsupported token '{token}'. Use one of: {SUPPORTED_SYMBOLS}")
        yields = await aggregator.get_yields_by_token(token)
    elif protocol:
        yields = await aggregator.get_yields_by_protocol(protocol)
    else:
        yields = await aggregator.get_all_yields()
    return _ok([y.model_dump(mode="json") for y in yields])


@app.post("/api/yields")
async def refresh_yields():
    aggregator = _services().aggregator
    aggregator.clear_cache()
    yields = await aggregator.get_all_yields()
    return _ok([y.model_dump(mode="json") for y in yields], message="Yield data refreshed")


@app.get("/api/opportunities")
async def get_opportunities(
    limit: int = Query(10, ge=0, le=100),
    min_advantage: float = Query(0.0),
):
    opportunities = await _services().ranker.get_best_opportunities()
    if min_advantage > 0:
        opportunities = [o for o in opportunities if o.advantage >= min_advantage]
    if limit > 0:
        opportunities = opportunities[:limit]
    return _ok(
        {
            "opportunities": [o.model_dump(mode="json") for o in opportunities],
            "stats": summarize(opportunities).model_dump(),
        }
    )


@app.get("/api/protocols")
async def get_protocols():
    settings = _services().settings
    return _ok(
        {
            "favored_protocol": settings.FAVORED_PROTOCOL,
            "supported_tokens": SUPPORTED_SYMBOLS,
            "protocols": {key: p.model_dump() for key, p in PROTOCOLS.items()},
        }
    )


@app.get("/api/status", response_model=ServiceStatus)
async def get_status():
    services = _services()
    return ServiceStatus(
        last_refresh_at=services.aggregator.last_refresh_at,
        sources=[s.name for s in services.aggregator.sources],
        cache_entries=len(services.cache),
        favored_protocol=services.settings.FAVORED_PROTOCOL,
        alerts_enabled=services.scheduler.running,
        active_alerts=len(services.book.active_alerts()),
    )


@app.post("/api/telegram/webhook")
async def telegram_webhook(update: Dict[str, Any]):
    services = _services()
    if not services.telegram.configured:
        return _error(503, "Bot token not configured")
    try:
        await services.bot.handle_update(update)
    except TelegramError as e:
        logger.error(f"Telegram webhook processing failed: {e}")
        return _error(500, "Webhook processing failed")
    return {"success": True}


@app.get("/api/telegram/webhook")
async def telegram_webhook_info():
    return {"message": "Telegram webhook endpoint", "status": "active", "timestamp": _now()}


@app.get("/api/telegram/status")
async def telegram_status():
    services = _services()
    if not services.telegram.configured:
        return _error(500, "Bot token not configured")
    try:
        me = await services.telegram.get_me()
    except TelegramError as e:
        logger.warning(f"Telegram getMe failed: {e}")
        return _error(400, "Bot not accessible")
    webhook_url = services.settings.WEBHOOK_URL
    return {
        "success": True,
        "bot": me,
        "webhook": {"configured": bool(webhook_url), "url": webhook_url},
        "timestamp": _now(),
    }


@app.post("/api/telegram/status")
async def telegram_set_webhook(req: WebhookRequest):
    services = _services()
    if not services.telegram.configured:
        return _error(500, "Bot token not configured")
    try:
        ok = await services.telegram.set_webhook(req.webhook_url)
    except TelegramError as e:
        logger.warning(f"Telegram setWebhook failed: {e}")
        return _error(400, "Failed to set webhook")
    return {"success": ok, "message": f"Webhook set to {req.webhook_url}", "timestamp": _now()}

