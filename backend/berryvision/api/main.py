from fastapi import APIRouter

from berryvision.api.routes import (
    alerts,
    analyses,
    environment,
    field_log,
    growth_alerts,
    growth_records,
    growth_stats,
    knowledge,
    lab,
    notifications,
    plants,
    rag,
    recipes,
    stats,
    training,
    uploads,
    users,
    utils,
)

api_router = APIRouter()
api_router.include_router(utils.router, tags=["utils"])
api_router.include_router(analyses.router, prefix="/analyses", tags=["analyses"])
api_router.include_router(stats.router, prefix="/stats", tags=["stats"])
api_router.include_router(training.router, tags=["training"])
api_router.include_router(uploads.router, tags=["uploads"])
api_router.include_router(plants.router, prefix="/growth", tags=["growth"])
api_router.include_router(growth_records.router, prefix="/growth", tags=["growth"])
api_router.include_router(growth_alerts.router, prefix="/growth", tags=["growth"])
api_router.include_router(environment.router, prefix="/growth", tags=["growth"])
api_router.include_router(growth_stats.router, prefix="/growth", tags=["growth"])
api_router.include_router(lab.router, prefix="/lab", tags=["lab"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
api_router.include_router(field_log.router, prefix="/field-log", tags=["field-log"])
api_router.include_router(knowledge.router, prefix="/admin/knowledge", tags=["knowledge"])
api_router.include_router(rag.router, prefix="/rag", tags=["rag"])
api_router.include_router(recipes.router, prefix="/recipes", tags=["recipes"])
