import logging
import time
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from src.api.error import register_error_handlers
from src.api.routes import payments, credits, webhooks

logger = logging.getLogger("billing.api")


def create_app(config) -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Consultation Billing Service",
        description="Payments, consultation credits, refunds and consultant payouts",
        version="1.0.0",
    )

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=config.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if config.ENABLE_LOGGING_MIDDLEWARE:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.time()
            response = await call_next(request)
            duration_ms = int((time.time() - start) * 1000)
            logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms")
            return response

    register_error_handlers(app)

    app.include_router(payments.router)
    app.include_router(credits.router)
    app.include_router(webhooks.router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
