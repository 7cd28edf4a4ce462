from fastapi import FastAPI

from .analytics import router as analytics_router
from .responses import router as responses_router
from .surveys import router as surveys_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(surveys_router, tags=["surveys"])
    app.include_router(analytics_router, tags=["analytics"])
    app.include_router(responses_router, tags=["responses"])
