from fastapi import APIRouter, FastAPI

from .responses import router as responses_router, scaffold_router as responses_scaffold_router
from .surveys import router as surveys_router, scaffold_router as surveys_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(surveys_router, tags=["surveys"])
    app.include_router(responses_router, tags=["responses"])

    app.include_router(surveys_scaffold_router, prefix="/_scaffold/surveys", tags=["scaffold-surveys"])
    app.include_router(responses_scaffold_router, prefix="/_scaffold/responses", tags=["scaffold-responses"])


__all__ = ["include_modular_routers", "APIRouter"]
