from fastapi import APIRouter
from teamspark.routers import (
    auth, admin, admin_users, teams, cycles, evaluations, competencies,
    okr, kudos, slack, notifications, setup
)

# Centralized API router hub.
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(admin_users.router, tags=["Administration"])
api_router.include_router(admin.router, tags=["Administration"])
api_router.include_router(teams.router, tags=["Teams"])
# Cycles first: /evaluations/cycles must not be captured by /evaluations/{evaluation_id}
api_router.include_router(cycles.router, tags=["Evaluation Cycles"])
api_router.include_router(evaluations.router, tags=["Evaluations"])
api_router.include_router(competencies.router, tags=["Competencies"])
api_router.include_router(okr.router, tags=["OKR"])
api_router.include_router(kudos.router, tags=["Kudos"])
api_router.include_router(slack.router, tags=["Slack"])
api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(setup.router, prefix="/setup", tags=["System Setup"])
