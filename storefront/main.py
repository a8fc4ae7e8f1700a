# storefront/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
import logging
import os

from storefront.config.settings import settings
from storefront.delivery.api.catalog import router as catalog_router
from storefront.delivery.api.checkout import router as checkout_router, webhook_router
from storefront.delivery.api.orders import router as orders_router
from storefront.domain.order_bootstrap import OrderBootstrap
from storefront.domain.payments import PaymentLedger, PaymentService
from storefront.domain.reconciler import GenerationReconciler
from storefront.domain.session import OrderSessionRegistry
from storefront.infrastructure.backend.client import BackendClient
from storefront.infrastructure.payments.stripe_gateway import StripeGateway

logger = logging.getLogger("uvicorn.error")


def install_services(app: FastAPI, backend, gateway, executor: Optional[ThreadPoolExecutor] = None) -> None:
    """Wire the backend client and payment gateway into the per-app services."""
    registry = OrderSessionRegistry()
    app.state.backend = backend
    app.state.registry = registry
    app.state.bootstrap = OrderBootstrap(backend, registry)
    app.state.reconciler = GenerationReconciler(backend, registry)
    app.state.payments = PaymentService(gateway, PaymentLedger(), executor)


@asynccontextmanager
async def lifespan(app: FastAPI):
    max_workers = min(4, os.cpu_count() or 1)
    executor = ThreadPoolExecutor(max_workers=max_workers)
    backend = BackendClient()
    install_services(app, backend, StripeGateway(), executor)
    logger.info(f"'{settings.PROJECT_NAME}' started (mode: {settings.ENVIRONMENT}), backend {backend.base_url}.")
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout endpoints will reject requests.")
    yield
    logger.info("Closing backend session and executor...")
    await backend.close()
    executor.shutdown(wait=True)
    logger.info("Storefront stopped.")

app = FastAPI(
    title="Storybook Storefront",
    description="Storefront service for personalized storybooks: order bootstrap, avatar and page generation, preview gating and checkout",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catalog_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(checkout_router, prefix=settings.API_V1_STR)
app.include_router(webhook_router)

@app.get("/")
async def root():
    return {"message": "Storybook Storefront Service", "version": "1.0.0", "status": "ok"}

@app.get("/health")
async def health_check():
    ready = getattr(app.state, "reconciler", None) is not None
    return {"status": "ok", "service": "Storybook Storefront 1.0", "services_ready": ready}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
