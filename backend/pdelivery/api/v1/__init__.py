"""
API v1 package initialization.

Collects the v1 routers into ``api_router``, mounted by the application
under the configured API prefix.
"""

from fastapi import APIRouter

from pdelivery.api.v1.catalog import catalog_routers
from pdelivery.api.v1.financial import router as financial_router
from pdelivery.api.v1.monitoring import router as monitoring_router
from pdelivery.api.v1.orders import router as orders_router
from pdelivery.api.v1.priority_settings import router as priority_settings_router

api_router = APIRouter()
api_router.include_router(orders_router)
api_router.include_router(monitoring_router)
api_router.include_router(priority_settings_router)
api_router.include_router(financial_router)
for catalog_router in catalog_routers:
    api_router.include_router(catalog_router)

__all__ = ["api_router"]
