from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from recipegen.core import database
from recipegen.core.config import get_settings
from recipegen.core.errors import register_error_handlers
from recipegen.core.logging_config import configure_logging
from recipegen.routers import (
    auth,
    cooking,
    health,
    ingredients,
    inventory,
    meal_plans,
    nutrition,
    recipes,
    shopping_list,
)
from recipegen.services.ai_gateway import AIGateway
from recipegen.services.seed import seed_sample_data

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

CORE_ROUTERS = (
    health.router,
    auth.router,
    recipes.router,
    ingredients.router,
    meal_plans.router,
    nutrition.router,
    shopping_list.router,
    inventory.router,
)


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings = get_settings()
    database.init_db()
    if settings.seed_sample_data:
        seed_sample_data(database.engine)
    application.state.ai_gateway = AIGateway(settings)
    logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    logger.info("%s shutting down", settings.app_name)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url,
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(application)

    for router in CORE_ROUTERS:
        application.include_router(router, prefix=API_PREFIX)
    application.include_router(cooking.router)

    @application.get("/favicon.ico", include_in_schema=False)
    def favicon():
        return Response(status_code=204)

    @application.get("/", include_in_schema=False)
    def root():
        return RedirectResponse(settings.docs_url or "/docs")

    return application


app = create_app()
