"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from academic_records.api.v1.endpoints import academics, audit, promotion, results

api_router = APIRouter()

# Sessions, terms, class levels, subjects and students
api_router.include_router(
    academics.router,
    prefix="/academics",
    tags=["Academic Setup"],
)

# Score imports, templates, ranking and result administration
api_router.include_router(
    results.router,
    prefix="/results",
    tags=["Results"],
)

# Promotion evaluation and application
api_router.include_router(
    promotion.router,
    prefix="/promotion",
    tags=["Promotion"],
)

# Audit Logs
api_router.include_router(
    audit.router,
    prefix="/audit-logs",
    tags=["Audit Logs"],
)
