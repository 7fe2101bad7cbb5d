from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from sqlmodel import SQLModel
from storefront.api import version_prefix, cur_version
from storefront.api.routers import public_routers, admin_routers
from storefront.common.custom_exceptions import register_all_exceptions
from storefront.common.logging_setup import setup_logging, shutdown_logging
from storefront.config.admin_config import admin_config
from storefront.config.settings import config_settings
from storefront.db.connection import async_engine
from storefront.middlewares.identity_middleware import IdentityMiddleware
from storefront.middlewares.request_id_middleware import RequestIdMiddleware
from storefront.notifications.notifier import LoggingNotifier, Notifier
from storefront.notifications.worker import NotificationWorker
from storefront.payments.dependencies import build_payment_gateway
from storefront.payments.gateway import PaymentGateway
import storefront.schema.full_schema  # noqa: F401  registers the tables on SQLModel.metadata


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    app_logger = setup_logging()
    if config_settings.CREATE_TABLES_ON_STARTUP:
        async with async_engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    worker: NotificationWorker = app.state.notification_worker
    await worker.start()
    app_logger.info("app.started")

    try:
        yield
    finally:
        # new requests are no longer accepted at this point
        await worker.shutdown()
        await app.state.payment_gateway.aclose()
        await async_engine.dispose()
        shutdown_logging()


def create_app(payment_gateway: Optional[PaymentGateway] = None, notifier: Optional[Notifier] = None) -> FastAPI:
    """Build the app. Collaborators default to the configured ones and can be swapped for tests."""
    app=FastAPI(
        title="Storefront",
        version=cur_version,
        lifespan=app_lifespan)

    app.state.payment_gateway = payment_gateway or build_payment_gateway(config_settings)
    app.state.notification_worker = NotificationWorker(
        notifier or LoggingNotifier(),
        workers_count=config_settings.NOTIFIER_WORKERS,
        max_queue_size=config_settings.NOTIFIER_QUEUE_SIZE,
        task_timeout=config_settings.NOTIFIER_TIMEOUT_SECONDS,
    )

    app.include_router(public_routers)
    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    app.add_middleware(IdentityMiddleware, skip_paths=[f"{version_prefix}/health"])
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app

app=create_app()
