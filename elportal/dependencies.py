"""
FastAPI dependencies wiring services to the shared store and clients.

The store and the upstream-facing services live on ``app.state`` for the
lifetime of the process; tests replace them through
``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from elportal.middleware.rate_limit import RateLimiter
from elportal.services.click_service import ClickService
from elportal.services.consumption_service import ConsumptionService
from elportal.services.conversion_service import ConversionService
from elportal.services.dashboard_service import DashboardService
from elportal.services.pixel_service import PixelService
from elportal.services.production_service import ProductionDataService
from elportal.store.base import KVStore


def get_kv_store(request: Request) -> KVStore:
    return request.app.state.kv_store


def get_rate_limiter(store: KVStore = Depends(get_kv_store)) -> RateLimiter:
    return RateLimiter(store)


def get_click_service(store: KVStore = Depends(get_kv_store)) -> ClickService:
    return ClickService(store)


def get_conversion_service(store: KVStore = Depends(get_kv_store)) -> ConversionService:
    return ConversionService(store)


def get_pixel_service(store: KVStore = Depends(get_kv_store)) -> PixelService:
    return PixelService(store)


def get_dashboard_service(store: KVStore = Depends(get_kv_store)) -> DashboardService:
    return DashboardService(store)


def get_production_service(request: Request) -> ProductionDataService:
    return request.app.state.production_service


def get_consumption_service(request: Request) -> ConsumptionService:
    return request.app.state.consumption_service
