"""
FastAPI Application Entry Point

Order intake backend for the point-of-sale ordering UI.

Endpoints:
    - GET  /api/health: Store reachability check
    - GET  /api/menu: Enabled menu items
    - GET  /api/hot-items: Best sellers (weekly or all-time, per deployment)
    - POST /api/orders: Admit an order with its line items
    - GET  /api/orders: Order history, newest first
    - GET  /api/orders/{order_id}: One order with its lines
    - GET  /api/used-order-numbers: Sequence numbers taken for a date/dine type

Run with: python -m order_intake.main

Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Union
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from order_intake.core.config import get_settings, setup_logging
from order_intake.core.exceptions import (
    DuplicateIdentifierError,
    StorageConnectionError,
    StorageError,
)
from order_intake.core.messages import message
from order_intake.database import StorageGateway, get_gateway
from order_intake.models import DineType
from order_intake.schemas import (
    ErrorResponse,
    HealthResponse,
    HotItemSummary,
    MenuItemResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderDetail,
    OrderSummary,
    iso_utc,
)
from order_intake.services import (
    MenuCatalog,
    OrderAdmission,
    OrderHistory,
    OrderIdentifierAllocator,
    PopularityAggregator,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.

    The store must be reachable at startup. If it is not, the error is
    re-raised so the server exits instead of serving without a data path.
    """
    settings = get_settings()

    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Database: {settings.database_server}")
    logger.info(f"   Hot items: {settings.hot_items_policy.value}")
    logger.info("=" * 60)

    gateway = StorageGateway.from_settings(settings)
    try:
        await gateway.connect()
    except StorageConnectionError:
        await gateway.dispose()
        logger.critical("❌ Refusing to start without a database connection")
        raise

    await gateway.init_schema()
    app.state.gateway = gateway
    app.state.settings = settings
    logger.info(f"✅ Application ready on port {settings.port}")

    yield  # Application runs

    logger.info("📴 Shutting down...")
    await gateway.dispose()
    logger.info("✅ Database connections closed")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Order intake backend: menu, order admission, history and hot items.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_catalog(gateway: StorageGateway = Depends(get_gateway)) -> MenuCatalog:
    return MenuCatalog(gateway)


def get_admission(gateway: StorageGateway = Depends(get_gateway)) -> OrderAdmission:
    return OrderAdmission(gateway)


def get_history(gateway: StorageGateway = Depends(get_gateway)) -> OrderHistory:
    return OrderHistory(gateway)


def get_allocator(gateway: StorageGateway = Depends(get_gateway)) -> OrderIdentifierAllocator:
    return OrderIdentifierAllocator(gateway)


def get_popularity(gateway: StorageGateway = Depends(get_gateway)) -> PopularityAggregator:
    return PopularityAggregator(gateway)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, Any]:
    """API root with the endpoint list."""
    return {
        "message": message("service_title"),
        "platform": "Python + FastAPI",
        "status": "running",
        "endpoints": [
            "/api/health",
            "/api/menu",
            "/api/hot-items",
            "/api/orders",
            "/api/used-order-numbers",
        ],
        "version": get_settings().app_version,
    }


@app.get(
    "/api/health",
    response_model=HealthResponse,
    responses={500: {"model": HealthResponse}},
    tags=["Health"],
)
async def health_check(
    gateway: StorageGateway = Depends(get_gateway),
) -> Union[HealthResponse, JSONResponse]:
    """Verify the store answers a trivial query."""
    try:
        await gateway.ping()
    except StorageError as e:
        logger.error(f"Health check failed: {e.original_error or e}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "database": "disconnected",
                "message": message("health_failed"),
            },
        )

    return HealthResponse(
        status="healthy",
        database="connected",
        server=get_settings().database_server,
        message=message("health_ok"),
        timestamp=iso_utc(datetime.now(timezone.utc)),
    )


# =============================================================================
# MENU & HOT ITEMS
# =============================================================================

@app.get("/api/menu", response_model=list[MenuItemResponse], tags=["Menu"])
async def get_menu(catalog: MenuCatalog = Depends(get_catalog)) -> list[MenuItemResponse]:
    """Enabled menu items ordered by category, then name."""
    try:
        return await catalog.list_enabled()
    except StorageError as e:
        logger.error(f"Failed to load menu: {e.original_error or e}")
        raise HTTPException(status_code=500, detail=message("menu_failed"))


@app.get(
    "/api/hot-items",
    response_model=Union[list[HotItemSummary], list[str]],
    tags=["Menu"],
)
async def get_hot_items(
    popularity: PopularityAggregator = Depends(get_popularity),
) -> Union[list[HotItemSummary], list[str]]:
    """
    Best sellers under the deployment's HOT_ITEMS_POLICY: names for
    ``weekly``, ``{id, name, price, orderCount}`` for ``all_time``.
    """
    current = get_settings()
    try:
        return await popularity.hot_items(current.hot_items_policy, current.hot_items_limit)
    except StorageError as e:
        logger.error(f"Failed to load hot items: {e.original_error or e}")
        raise HTTPException(status_code=500, detail=message("hot_items_failed"))


@app.get("/hot-items", include_in_schema=False)
async def legacy_hot_items(request: Request) -> RedirectResponse:
    """Older clients call the path without the /api prefix."""
    url = request.url.replace(path="/api/hot-items")
    return RedirectResponse(url=str(url), status_code=302)


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def create_order(
    order_data: OrderCreate,
    admission: OrderAdmission = Depends(get_admission),
) -> OrderCreateResponse:
    """
    Admit an order and its line items in one transaction.

    Items whose name is not on the menu are dropped and listed in
    ``droppedItems``; the order is still created. A 409 means the order id
    was taken in the meantime: fetch used numbers again and retry.
    """
    logger.info(f"Creating order {order_data.order_id} ({len(order_data.items)} items)")

    try:
        receipt = await admission.submit_order(order_data)
    except DuplicateIdentifierError:
        raise HTTPException(status_code=409, detail=message("order_duplicate"))
    except StorageError as e:
        logger.error(f"Failed to create order {order_data.order_id}: {e.original_error or e}")
        raise HTTPException(status_code=500, detail=message("order_failed"))

    return OrderCreateResponse(
        success=True,
        order_id=receipt.order_id,
        message=receipt.message,
        dropped_items=receipt.dropped_items,
    )


@app.get("/api/orders", response_model=list[OrderSummary], tags=["Orders"])
async def list_orders(history: OrderHistory = Depends(get_history)) -> list[OrderSummary]:
    """All orders, newest first."""
    try:
        return await history.list_recent()
    except StorageError as e:
        logger.error(f"Failed to list orders: {e.original_error or e}")
        raise HTTPException(status_code=500, detail=message("orders_failed"))


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderDetail,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(order_id: str, history: OrderHistory = Depends(get_history)) -> OrderDetail:
    """One order with its persisted lines."""
    try:
        order = await history.get(order_id)
    except StorageError as e:
        logger.error(f"Failed to load order {order_id}: {e.original_error or e}")
        raise HTTPException(status_code=500, detail=message("orders_failed"))

    if order is None:
        raise HTTPException(status_code=404, detail=message("order_not_found"))
    return order


@app.get("/api/used-order-numbers", response_model=list[int], tags=["Orders"])
async def used_order_numbers(
    dine_type: str = Query(..., alias="dineType", description="D/T or dine-in/takeout"),
    date_str: str = Query(..., alias="dateStr", min_length=1, description="Date prefix, e.g. 20250711"),
    allocator: OrderIdentifierAllocator = Depends(get_allocator),
) -> list[int]:
    """Sequence numbers already used for the date and dine type, ascending."""
    try:
        parsed = DineType.parse(dine_type)
    except ValueError:
        raise HTTPException(status_code=422, detail=message("invalid_request"))

    try:
        return await allocator.used_sequence_numbers(parsed, date_str)
    except StorageError as e:
        logger.error(f"Failed to load used order numbers: {e.original_error or e}")
        raise HTTPException(status_code=500, detail=message("used_numbers_failed"))


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": ...}``."""
    detail = exc.detail
    if exc.status_code == 404 and detail == "Not Found":
        detail = message("not_found")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and query strings."""
    logger.info(f"Rejected {request.method} {request.url.path}: {len(exc.errors())} validation error(s)")
    return JSONResponse(
        status_code=422,
        content={"error": message("invalid_request"), "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Storage failures that escaped a route; never expose statement text."""
    logger.error(f"Storage error in {request.method} {request.url.path}: {exc.original_error or exc}")
    return JSONResponse(status_code=500, content={"error": message("internal_error")})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler. ``detail`` only with DEBUG outside production."""
    logger.exception(f"Unhandled exception: {exc}")
    content = {"error": message("internal_error")}
    settings = get_settings()
    if settings.debug and not settings.is_production:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    uvicorn.run(
        "order_intake.main:app",
        host=settings.api_host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )
