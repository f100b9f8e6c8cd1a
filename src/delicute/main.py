import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from delicute.api import health
from delicute.api.errors import register_error_handlers
from delicute.api.routes.coupons import router as coupons_router
from delicute.api.routes.menu import categories_router, menu_router
from delicute.api.routes.orders import router as orders_router
from delicute.api.routes.promotions import router as promotions_router
from delicute.api.routes.public import router as public_router
from delicute.config import Settings, settings as default_settings
from delicute.db.session import create_engine, create_session_factory

log = logging.getLogger(__name__)


def create_app(settings: Settings = default_settings) -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_engine(settings)
        app.state.session_factory = create_session_factory(engine)
        log.info("🚀 Application started")
        yield
        await engine.dispose()
        log.info("🛑 Application stopped")

    app = FastAPI(title="Delicute", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Подключаем роуты
    app.include_router(health.router)
    app.include_router(public_router)
    app.include_router(orders_router)
    app.include_router(coupons_router)
    app.include_router(categories_router)
    app.include_router(menu_router)
    app.include_router(promotions_router)
    return app


app = create_app()
