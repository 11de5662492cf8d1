"""
FastAPI Application Entry Point

Food Delivery API - order pipeline for the mobile app, web app and the
operations Telegram bot.

Storage is optional: when the database is unreachable the API keeps
answering from fixed mock data and marks those answers with ``mode: "mock"``.

Endpoints:
    - GET  /restaurants, /restaurants/{id}, /restaurants/{id}/menu: Catalog
    - POST /orders: Submit an order (bearer token)
    - GET  /users/me/orders, /users/me/stats: Customer history (bearer token)
    - /bot/*, /admin/*: Operations endpoints (X-Admin-API-Key)
    - POST /test-notification: Send a sample order to the operations chat
    - GET  /health: System health check

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from food_delivery.core.config import get_settings, setup_logging
from food_delivery.core.errors import InvalidRequest, NotFound, ServiceError, StorageUnavailable
from food_delivery.core.security import Identity, require_admin_key, require_identity
from food_delivery.schemas import (
    BotOrderDetailResponse,
    BotOrderListResponse,
    BotOrderResponse,
    DishCreate,
    DishUpdate,
    ErrorResponse,
    HealthResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
    StatusChange,
    StatusUpdate,
    StatusUpdateResponse,
    UserStatsResponse,
)
from food_delivery.services import fallback
from food_delivery.services.notifications import (
    NotificationDispatcher,
    OrderSummary,
    build_dispatcher,
)
from food_delivery.services.orders import OrderAssembler
from food_delivery.services.persistence import PersistenceGateway
from food_delivery.services.status import StatusTransitionHandler

logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    settings = get_settings()

    # Startup
    setup_logging()
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    gateway: PersistenceGateway = app.state.gateway
    dispatcher: NotificationDispatcher = app.state.dispatcher

    if await gateway.connect():
        logger.info("✅ Database connected")
    else:
        logger.warning("⚠️ Database unavailable, serving mock data")
    gateway.start_probe()

    logger.info(f"✅ Notification Service: {dispatcher.provider_name}")
    if not dispatcher.configured:
        logger.warning("⚠️ TELEGRAM_CHAT_ID not set, new orders will not be announced")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await gateway.stop_probe()
    await dispatcher.drain()
    await gateway.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

def create_app(
    gateway: Optional[PersistenceGateway] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    """
    Build the application.

    ``gateway`` and ``dispatcher`` default to ones built from settings; tests
    pass their own.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Food ordering backend: order submission with server-side pricing, "
            "order history, catalog and operations endpoints with Telegram notifications."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.gateway = gateway or PersistenceGateway(
        settings.database_url,
        probe_interval=settings.db_probe_interval_seconds,
        echo=settings.database_echo,
        seed_demo_data=settings.seed_demo_data,
    )
    app.state.dispatcher = dispatcher or build_dispatcher()
    app.state.assembler = OrderAssembler(
        app.state.gateway,
        app.state.dispatcher,
        strict_pricing=settings.strict_pricing,
    )
    app.state.status_handler = StatusTransitionHandler(
        app.state.gateway,
        app.state.dispatcher,
        enforce_transitions=settings.strict_status_transitions,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(router)
    return app


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_assembler(request: Request) -> OrderAssembler:
    return request.app.state.assembler


def get_status_handler(request: Request) -> StatusTransitionHandler:
    return request.app.state.status_handler


# =============================================================================
# ROUTES
# =============================================================================

router = APIRouter()


@router.get("/", tags=["Root"])
async def root(gateway: PersistenceGateway = Depends(get_gateway)) -> dict[str, Any]:
    """API root with navigation links."""
    settings = get_settings()
    return {
        "message": f"🚀 {settings.app_name} is running",
        "status": "ok",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "database": gateway.mode,
        "telegram": "configured" if settings.telegram_configured else "not-configured",
        "documentation": "/docs",
        "health": "/health",
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    gateway: PersistenceGateway = Depends(get_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> HealthResponse:
    """Report storage mode and notification channel configuration."""
    settings = get_settings()
    return HealthResponse(
        status="ok",
        database=gateway.mode,
        notification_service=dispatcher.provider_name,
        telegram="configured" if settings.telegram_configured else "not-configured",
        environment=settings.env_mode.value,
        timestamp=datetime.now(timezone.utc),
    )


# -----------------------------------------------------------------------------
# Catalog
# -----------------------------------------------------------------------------

@router.get("/restaurants", response_model=None, tags=["Catalog"])
async def list_restaurants(
    gateway: PersistenceGateway = Depends(get_gateway),
) -> list[dict[str, Any]]:
    """Active restaurants, best rated first."""
    logger.info("🍽️ Restaurant list requested")
    try:
        return await gateway.list_restaurants()
    except StorageUnavailable:
        return fallback.restaurants()


@router.get(
    "/restaurants/{restaurant_id}",
    response_model=None,
    responses={404: {"model": ErrorResponse}},
    tags=["Catalog"],
)
async def get_restaurant(
    restaurant_id: int,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> dict[str, Any]:
    try:
        return await gateway.get_restaurant(restaurant_id)
    except StorageUnavailable:
        restaurant = fallback.restaurant(restaurant_id)
        if restaurant is None:
            raise NotFound(f"Restaurant #{restaurant_id} not found")
        return restaurant


@router.get("/restaurants/{restaurant_id}/menu", response_model=None, tags=["Catalog"])
async def get_menu(
    restaurant_id: int,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> list[dict[str, Any]]:
    """Available dishes of one restaurant."""
    logger.info(f"📋 Menu requested for restaurant {restaurant_id}")
    try:
        return await gateway.get_menu(restaurant_id)
    except StorageUnavailable:
        return fallback.menu(restaurant_id)


# -----------------------------------------------------------------------------
# Orders
# -----------------------------------------------------------------------------

@router.post(
    "/orders",
    response_model=OrderCreateResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Submit Order",
)
async def create_order(
    order_data: OrderCreate,
    identity: Identity = Depends(require_identity),
    assembler: OrderAssembler = Depends(get_assembler),
) -> OrderCreateResponse:
    """
    Submit an order.

    Prices are recomputed on the server from the submitted line items; any
    total the client sends is ignored. When the database is unavailable the
    order is still accepted and answered with a mock order.
    """
    result = await assembler.submit(identity, order_data)
    message = "Order created" if result.persisted else "Order created (test mode)"
    return OrderCreateResponse(
        message=message,
        order=OrderResponse.from_record(result.order),
    )


@router.get(
    "/users/me/orders",
    response_model=OrderListResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def list_my_orders(
    identity: Identity = Depends(require_identity),
    gateway: PersistenceGateway = Depends(get_gateway),
) -> OrderListResponse:
    """The caller's most recent orders, newest first."""
    try:
        orders = await gateway.list_orders_for_user(
            identity.user_id,
            limit=get_settings().order_history_limit,
        )
    except StorageUnavailable:
        orders = fallback.orders_for_user(identity.user_id)
    return OrderListResponse(orders=[OrderResponse.from_record(o) for o in orders])


@router.get(
    "/users/me/stats",
    response_model=UserStatsResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def my_stats(
    identity: Identity = Depends(require_identity),
    gateway: PersistenceGateway = Depends(get_gateway),
) -> UserStatsResponse:
    try:
        stats = await gateway.user_stats(identity.user_id)
    except StorageUnavailable:
        stats = fallback.user_stats(identity.user_id)
    return UserStatsResponse(**stats)


# -----------------------------------------------------------------------------
# Operations bot
# -----------------------------------------------------------------------------

@router.get(
    "/bot/orders",
    response_model=BotOrderListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admin_key)],
    tags=["Bot"],
)
async def bot_list_orders(
    gateway: PersistenceGateway = Depends(get_gateway),
) -> BotOrderListResponse:
    logger.info("🤖 Bot requested the order list")
    try:
        orders = await gateway.list_all_orders(limit=get_settings().order_history_limit)
        mode = None
    except StorageUnavailable:
        orders = [fallback.example_order()]
        mode = fallback.MOCK_MODE
    return BotOrderListResponse(
        orders=[BotOrderResponse.from_record(o) for o in orders],
        mode=mode,
    )


@router.get(
    "/bot/orders/{order_id}",
    response_model=BotOrderDetailResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Bot"],
)
async def bot_get_order(
    order_id: int,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> BotOrderDetailResponse:
    logger.info(f"🤖 Bot requested order {order_id}")
    try:
        order = await gateway.read_composite(order_id)
    except StorageUnavailable:
        order = fallback.example_order(order_id=order_id)
    return BotOrderDetailResponse(order=BotOrderResponse.from_record(order))


@router.put(
    "/bot/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Bot"],
)
async def bot_update_status(
    order_id: int,
    update: StatusUpdate,
    handler: StatusTransitionHandler = Depends(get_status_handler),
) -> StatusUpdateResponse:
    """Status change from the bot. Reported as done even in mock mode."""
    record = await handler.apply(order_id, update.status, allow_cosmetic=True)
    message = "Order status updated" if record.mode is None else "Order status updated (test mode)"
    return StatusUpdateResponse(message=message, order=StatusChange.from_record(record))


@router.post(
    "/bot/dish/{dish_id}/toggle",
    response_model=None,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Bot"],
)
async def bot_toggle_dish(
    dish_id: int,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> dict[str, Any]:
    dish = await gateway.toggle_dish_availability(dish_id)
    state = "available" if dish["is_available"] else "unavailable"
    return {"success": True, "message": f"Dish is now {state}", "dish": dish}


@router.get(
    "/bot/dish/{dish_id}",
    response_model=None,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Bot"],
)
async def bot_get_dish(
    dish_id: int,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> dict[str, Any]:
    return {"success": True, "dish": await gateway.get_dish(dish_id)}


# -----------------------------------------------------------------------------
# Admin panel
# -----------------------------------------------------------------------------

@router.put(
    "/admin/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Admin"],
)
async def admin_update_status(
    order_id: int,
    update: StatusUpdate,
    handler: StatusTransitionHandler = Depends(get_status_handler),
) -> StatusUpdateResponse:
    record = await handler.apply(order_id, update.status)
    return StatusUpdateResponse(message="Order status updated", order=StatusChange.from_record(record))


@router.put(
    "/admin/dishes/{dish_id}",
    response_model=None,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Admin"],
)
async def admin_update_dish(
    dish_id: int,
    update: DishUpdate,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Partial dish update; fields absent from the body are left alone."""
    dish = await gateway.update_dish(dish_id, update.model_dump(exclude_unset=True))
    logger.info(f"🍲 Dish #{dish_id} updated")
    return {"success": True, "message": "Dish updated", "dish": dish}


@router.post(
    "/admin/dishes",
    response_model=None,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin_key)],
    tags=["Admin"],
)
async def admin_create_dish(
    dish: DishCreate,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Add a dish to a restaurant menu. New dishes start available."""
    if dish.missing_fields():
        raise InvalidRequest("Required fields missing: restaurant_id, name, price")

    fields = dish.model_dump(exclude={"restaurant_id"})
    fields["description"] = dish.description or ""
    fields["image_url"] = dish.image_url or ""
    created = await gateway.create_dish(dish.restaurant_id, fields)
    return {"success": True, "message": "Dish created", "dish": created}


# -----------------------------------------------------------------------------
# Notifications
# -----------------------------------------------------------------------------

@router.post(
    "/test-notification",
    responses={400: {"model": ErrorResponse}},
    tags=["Notifications"],
)
async def test_notification(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Send a sample order to the operations chat."""
    if not dispatcher.configured:
        raise InvalidRequest("Notification chat not configured")

    summary = OrderSummary(
        order_id=f"TEST_{int(datetime.now(timezone.utc).timestamp() * 1000)}",
        customer_name="Test Customer",
        customer_phone="+7 (999) 123-45-67",
        delivery_address="1 Test St",
        restaurant_name=fallback.DEMO_RESTAURANT["name"],
        raw_items=[
            {"dish_name": dish["name"], "dish_price": dish["price"], "quantity": quantity}
            for dish, quantity in fallback.sample_items()
        ],
    )
    delivered = await dispatcher.notify_order(summary)
    return {
        "success": delivered,
        "message": "Test notification sent" if delivered else "Test notification could not be delivered",
    }


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if field:
            message = f"{field}: {message}"
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")

        content = {"success": False, "error": "Internal Server Error"}
        if get_settings().debug:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "food_delivery.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
