from fastapi import APIRouter

from app.api.v1.endpoints import categories, services

api_router = APIRouter()

# Category browsing, navigation and administration endpoints
api_router.include_router(
    categories.router, prefix="/categories", tags=["categories"]
)

# Service and listing search endpoints
api_router.include_router(services.router, prefix="/services", tags=["services"])
