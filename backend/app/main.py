from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.exceptions import register_exception_handlers
from app.middleware.tenant import TenantMiddleware
from app.routers import bills, buyers, health, orders, stock
from app.services.scheduler import lifespan

app = FastAPI(
    title="ChallanBook",
    description="Wholesale challans, monthly GST billing and buyer ledgers",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tenant context (added last, so it runs first)
app.add_middleware(TenantMiddleware)

# ── Routers ──────────────────────────────────────────────────
# Public (no tenant context needed)
app.include_router(health.router)

# Organization-scoped (require organization_id in JWT)
app.include_router(bills.router, prefix="/api/bills", tags=["bills"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(buyers.router, prefix="/api/buyers", tags=["buyers"])
app.include_router(stock.router, prefix="/api/stock", tags=["stock"])
