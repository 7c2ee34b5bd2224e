import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from hubwallet import containers
from hubwallet.config import settings
from hubwallet.core.exception_handlers import register_exception_handlers
from hubwallet.core.logging_middleware import LoggingMiddleware
from hubwallet.logging_config import setup_logging
from hubwallet.routers import game_router, health_router, specials_router, wallet_router

load_dotenv("hubwallet/.env")

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(wallet_router.router, prefix=settings.API_V1_STR)
    app.include_router(game_router.router, prefix=settings.API_V1_STR)
    app.include_router(specials_router.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started (environment={settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
