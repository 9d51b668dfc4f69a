from fastapi import APIRouter

from toron.api.v1 import admin as admin_router
from toron.api.v1 import conversations as conversations_router
from toron.api.v1 import debates as debates_router
from toron.api.v1 import events as events_router


api_router = APIRouter()

api_router.include_router(conversations_router.router, prefix="/v1/conversations", tags=["conversations"])
api_router.include_router(debates_router.router, prefix="/v1/debates", tags=["debates"])
api_router.include_router(events_router.router, prefix="/v1/events", tags=["events"])
api_router.include_router(admin_router.router, prefix="/v1/admin", tags=["admin"])
