from fastapi import APIRouter

from changefeed.api.v1 import internal, repositories

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(repositories.router)
api_router.include_router(internal.router)
