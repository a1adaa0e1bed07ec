from fastapi import APIRouter, FastAPI

from .admin import router as admin_router, scaffold_router as admin_scaffold_router
from .questionnaire import router as questionnaire_router, scaffold_router as questionnaire_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(questionnaire_router, tags=["questionnaire"])
    app.include_router(admin_router, tags=["admin"])

    app.include_router(questionnaire_scaffold_router, prefix="/_scaffold/questionnaire", tags=["scaffold-questionnaire"])
    app.include_router(admin_scaffold_router, prefix="/_scaffold/admin", tags=["scaffold-admin"])


__all__ = ["include_modular_routers", "APIRouter"]
