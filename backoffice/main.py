from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from backoffice.database.database import sync_engine, SessionLocal, Base

# Import middleware
from backoffice.common.middleware import OperatorContextMiddleware, SecurityHeadersMiddleware

# Import routers
from backoffice.modules.staff.router import staff_router
from backoffice.modules.catalog.router import units_router, warehouses_router, articles_router
from backoffice.modules.sequences.router import sequences_router
from backoffice.modules.inventory.router import inventory_router
from backoffice.modules.prices.router import prices_router
from backoffice.modules.tables.router import zones_router, tables_router
from backoffice.modules.orders.router import orders_router
from backoffice.modules.cash_registers.router import cash_registers_router
from backoffice.modules.invoices.router import invoices_router
from backoffice.modules.cxc.router import payment_terms_router, cxc_router
from backoffice.modules.reports.routers import (
    sales_reports_router,
    inventory_reports_router,
    cxc_reports_router
)

# Import models for table creation
import backoffice.modules.staff.models
import backoffice.modules.catalog.models
import backoffice.modules.sequences.models
import backoffice.modules.inventory.models
import backoffice.modules.prices.models
import backoffice.modules.tables.models
import backoffice.modules.orders.models
import backoffice.modules.cash_registers.models
import backoffice.modules.invoices.models
import backoffice.modules.cxc.models

from backoffice.modules.cxc.service import seed_payment_terms
from backoffice.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Restobar Back Office API",
    description="Mesas, pedidos, inventario, precios, cajas, facturación y cuentas por cobrar",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(OperatorContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(staff_router)
app.include_router(units_router)
app.include_router(warehouses_router)
app.include_router(articles_router)
app.include_router(sequences_router)
app.include_router(inventory_router)
app.include_router(prices_router)
app.include_router(zones_router)
app.include_router(tables_router)
app.include_router(orders_router)
app.include_router(cash_registers_router)
app.include_router(invoices_router)
app.include_router(payment_terms_router)
app.include_router(cxc_router)
app.include_router(sales_reports_router)
app.include_router(inventory_reports_router)
app.include_router(cxc_reports_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {
        "message": "Restobar Back Office API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Restobar Back Office API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Retail mode: {settings.RETAIL_MODE_ENABLED}")

    if settings.ENVIRONMENT == "development":
        db = SessionLocal()
        try:
            seed_payment_terms(db)
        except Exception as e:
            logger.warning(f"Seed of payment terms skipped or failed: {e}")
        finally:
            db.close()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Restobar Back Office API shutting down...")
