"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from elportal.clients.eloverblik import EloverblikClient
from elportal.clients.energidataservice import EnergiDataServiceClient
from elportal.config import settings
from elportal.exceptions import ElPortalError
from elportal.handlers.exception_handler import (
    elportal_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from elportal.logging.config import configure_logging
from elportal.middleware.cors import (
    CONSUMPTION_POLICY,
    PUBLIC_TRACKING_POLICIES,
    CORSHeadersMiddleware,
)
from elportal.middleware.logging import LoggingMiddleware
from elportal.routes import admin, eloverblik, production, status, tracking
from elportal.services.consumption_service import ConsumptionService
from elportal.services.production_service import ProductionDataService
from elportal.store import create_kv_store

# Configure logging before creating the app
configure_logging()

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="""
## DinElPortal Tracking API

Click attribution, conversion tracking and cached market data for the
DinElPortal electricity comparison site.

### Endpoints

- **Click tracking**: `POST /api/track-click` records an affiliate click
  (`click_id` must start with `dep_`). Accepts `navigator.sendBeacon` bodies.
- **Conversions**: `POST /api/track-conversion` attributes a partner-reported
  conversion to a stored click (webhooks send `X-Webhook-Secret`).
- **Pixel**: `GET /api/tracking/pixel` records page views, landings and
  conversions from partner sites and always answers with a 1x1 GIF.
- **Dashboard**: `GET /api/admin/dashboard` aggregates clicks, conversions
  and revenue per partner.
- **Production data**: `GET /api/monthly-production` returns the last 12
  months of Danish production data, cached for 24 hours.
- **Consumption**: `POST /api/eloverblik/...` proxies metered consumption
  from Eloverblik.

### Authentication

The dashboard requires the admin secret:

```
Authorization: Bearer ADMIN_SECRET
```

Conversion webhooks from partner backends send
`X-Webhook-Secret: CONVERSION_WEBHOOK_SECRET`.

### Rate Limits

- Click tracking: 100 requests per minute per client IP (fixed window)
- 429 responses include a Retry-After header
""",
    docs_url="/docs",
    redoc_url="/redoc",
    contact={"name": "DinElPortal", "url": settings.site_url},
    license_info={"name": "Proprietary", "url": settings.site_url},
)

# Shared store and cache-owning services for this process
app.state.kv_store = create_kv_store()
app.state.production_service = ProductionDataService(
    app.state.kv_store, EnergiDataServiceClient()
)
app.state.consumption_service = ConsumptionService(EloverblikClient())

# Register middleware (last added = outermost layer)
# CORS sits inside logging so preflight answers are logged too
app.add_middleware(
    CORSHeadersMiddleware,
    policies=[*PUBLIC_TRACKING_POLICIES, CONSUMPTION_POLICY],
)
app.add_middleware(LoggingMiddleware)

# Register exception handlers
app.add_exception_handler(ElPortalError, elportal_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Register routers
app.include_router(tracking.router)
app.include_router(admin.router)
app.include_router(production.router)
app.include_router(eloverblik.router)
app.include_router(status.router)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """
    Root endpoint with API information.

    Returns:
        Dict with welcome message and docs link
    """
    return {
        "message": f"Welcome to {settings.api_title}",
        "version": settings.api_version,
        "docs": "/docs",
        "health": "/api/health",
    }
