from fastapi import APIRouter

from . import controls
from . import health
from . import pending
from . import rows
from . import sessions

api_router = APIRouter()

api_router.include_router(rows.router)
api_router.include_router(controls.router)
api_router.include_router(sessions.router)
api_router.include_router(pending.router)
api_router.include_router(pending.settings_router)
api_router.include_router(health.router)
