from contextlib import asynccontextmanager
from fastapi import FastAPI
from vapeshop import logger
from vapeshop.api import cur_version, version_prefix
from vapeshop.api.routers import admin_routers, public_routers
from vapeshop.auth.telegram import TelegramNotifier
from vapeshop.background_workers.code_cleanup_worker import CodeCleanupWorker
from vapeshop.common.custom_exceptions import register_all_exceptions
from vapeshop.common.logging_setup import setup_logging, shutdown_logging
from vapeshop.config.admin_config import admin_config
from vapeshop.config.settings import config_settings
from vapeshop.db.connection import async_engine, async_session
from vapeshop.db.schema import create_all_tables
from vapeshop.home_blocks.services import HomeBlocksCache, seed_home_blocks
from vapeshop.middlewares.auth_middleware import AuthenticationMiddleware
from vapeshop.middlewares.request_id_middleware import RequestIdMiddleware


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()

    if config_settings.DB_CREATE_ALL:
        await create_all_tables()

    app.state.notifier = TelegramNotifier(config_settings.TELEGRAM_BOT_TOKEN)
    await seed_home_blocks(async_session)
    app.state.home_blocks_cache = HomeBlocksCache()

    cleanup_worker = CodeCleanupWorker(async_session, interval_seconds=config_settings.CODE_CLEANUP_INTERVAL_SECONDS)
    cleanup_worker.start()
    app.state.code_cleanup_worker = cleanup_worker

    if not app.state.notifier.configured:
        logger.warning("startup.telegram_not_configured")
    logger.info("startup.complete", extra={"env": admin_config.ENV})

    try:
        yield
    finally:
        # new requests are no longer accepted at this point
        await cleanup_worker.stop()
        await app.state.notifier.aclose()
        # safe to dispose DB engine after workers exit
        await async_engine.dispose()
        logger.info("shutdown.complete")
        shutdown_logging()


def create_app():
    app = FastAPI(
        title="Medusa Vape Shop",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    app.add_middleware(AuthenticationMiddleware, session_maker=async_session,
                       paths=[f"{version_prefix}/auth/phone/",
                              f"{version_prefix}/auth/telegram",
                              f"{version_prefix}/auth/refresh",
                              f"{version_prefix}/auth/logout",
                              f"{version_prefix}/health",
                              f"{version_prefix}/home-blocks",
                              "/docs",
                              "/redoc",
                              "/openapi.json"])
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app


app = create_app()
