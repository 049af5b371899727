"""
FastAPI Application Entry Point

Restaurant Order Desk - voice-assistant orders, triaged live by staff.

Endpoints:
    - POST /api/vapi/webhook: Vapi.ai webhook (order submission)
    - GET/POST/PUT /api/vapi/settings: assistant settings and menu sync
    - GET/POST /api/menu, PATCH/DELETE /api/menu/{id}: menu management
    - GET /api/orders, GET/PATCH /api/orders/{id}: order triage
    - WS /ws/orders: real-time order feed
    - GET /dashboard: dashboard UI
    - GET /health: system health check
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from contextlib import asynccontextmanager

import pydantic
import uvicorn
from fastapi import FastAPI, Depends, Query, Request, WebSocket
from fastapi.responses import JSONResponse, HTMLResponse
from fastapi.templating import Jinja2Templates
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.datastructures import UploadFile

from orderdesk.core.config import get_settings, setup_logging
from orderdesk.core.exceptions import OrderDeskError, ValidationError
from orderdesk.database import get_db, get_session_factory, init_db, engine
from orderdesk.repository import OrderDeskStore
from orderdesk.schemas import (
    Order,
    MenuItem,
    MenuItemCreate,
    MenuItemUpdate,
    MenuImportResponse,
    OrderStatusUpdate,
    SettingsUpdate,
    SyncResponse,
    SuccessResponse,
    ErrorResponse,
    HealthResponse,
)
from orderdesk.services.menu_catalog import MenuCatalog
from orderdesk.services.order_lifecycle import OrderService
from orderdesk.services.realtime import BaseOrderBroker, get_order_broker
from orderdesk.services.realtime.feed import serve_dashboard
from orderdesk.services.voice import (
    AssistantSyncService,
    VapiWebhookHandler,
    get_assistant_sync_service,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

# Template configuration
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

WEBHOOK_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info(f"   Strict transitions: {settings.strict_transitions}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    broker = get_order_broker()
    logger.info(f"✅ Order Broker: {broker.provider_name}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await broker.close()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Order dashboard for a voice-ordering assistant: webhook ingestion, "
        "order triage, live updates and menu sync."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_store(
    db: AsyncSession = Depends(get_db),
    broker: BaseOrderBroker = Depends(get_order_broker),
) -> OrderDeskStore:
    return OrderDeskStore(db, broker)


def get_order_service(store: OrderDeskStore = Depends(get_store)) -> OrderService:
    return OrderService(store, strict_transitions=get_settings().strict_transitions)


def get_menu_catalog(store: OrderDeskStore = Depends(get_store)) -> MenuCatalog:
    return MenuCatalog(store)


async def read_json_object(request: Request) -> dict[str, Any]:
    """Request body as a dict; anything else reads as empty."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def webhook_url(request: Request) -> str:
    base = settings.public_base_url or str(request.base_url)
    return f"{base.rstrip('/')}/api/vapi/webhook"


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍕 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "dashboard": "/dashboard",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    broker: BaseOrderBroker = Depends(get_order_broker),
) -> HealthResponse:
    """Verify the database and the real-time broker are reachable."""

    db_status = "healthy"
    try:
        await db.execute(select(1))
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    broker_status = "healthy" if await broker.health_check() else "unhealthy"

    overall = "operational" if db_status == broker_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        broker=broker_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# VAPI WEBHOOK ENDPOINT
# =============================================================================

@app.options("/api/vapi/webhook", tags=["Vapi Webhook"])
async def vapi_webhook_options() -> JSONResponse:
    return JSONResponse({}, headers=WEBHOOK_CORS_HEADERS)


@app.post(
    "/api/vapi/webhook",
    tags=["Vapi Webhook"],
    summary="Vapi.ai Webhook Endpoint",
)
async def vapi_webhook(
    request: Request,
    orders: OrderService = Depends(get_order_service),
) -> JSONResponse:
    """
    Handle incoming webhooks from Vapi.ai.

    Accepts tool-calls batches, legacy function calls and direct order
    bodies; every other event is acknowledged.

    Configure this URL on the assistant (the settings sync does it):
        https://your-domain.com/api/vapi/webhook
    """
    try:
        body = await request.json()
        if isinstance(body, dict):
            message = body.get("message")
            kind = message.get("type") if isinstance(message, dict) else None
            logger.info(f"Vapi webhook received: {kind or 'no envelope'}")
        logger.debug(f"Payload: {body}")

        outcome = await VapiWebhookHandler(orders).handle_webhook(body)

    except Exception as e:
        logger.exception(f"Error processing Vapi webhook: {e}")
        return JSONResponse(
            {"error": "Internal Server Error"},
            status_code=500,
            headers=WEBHOOK_CORS_HEADERS,
        )

    return JSONResponse(outcome.body, status_code=outcome.status_code, headers=WEBHOOK_CORS_HEADERS)


# =============================================================================
# ASSISTANT SETTINGS ENDPOINTS
# =============================================================================

@app.get("/api/vapi/settings", tags=["Vapi Settings"])
async def read_vapi_settings(store: OrderDeskStore = Depends(get_store)) -> dict[str, Any]:
    """Current settings with the API key masked."""
    current = await store.get_settings()
    return current.masked().model_dump(by_alias=True, exclude_none=True)


@app.post("/api/vapi/settings", response_model=SuccessResponse, tags=["Vapi Settings"])
async def write_vapi_settings(
    payload: SettingsUpdate,
    store: OrderDeskStore = Depends(get_store),
) -> SuccessResponse:
    """Update any of apiKey, assistantId, serverUrl."""
    current = await store.get_settings()
    changes = payload.model_dump(exclude_unset=True)
    await store.save_settings(current.model_copy(update=changes))
    logger.info(f"Vapi settings updated: {sorted(changes)}")
    return SuccessResponse()


@app.put(
    "/api/vapi/settings",
    response_model=SyncResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Vapi Settings"],
    summary="Sync menu to the Vapi assistant",
)
async def sync_vapi_assistant(
    request: Request,
    store: OrderDeskStore = Depends(get_store),
    sync_service: AssistantSyncService = Depends(get_assistant_sync_service),
) -> SyncResponse:
    return await sync_service.sync(store, webhook_url(request))


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get("/api/menu", response_model=list[MenuItem], tags=["Menu"])
async def list_menu(
    category: Optional[str] = Query(None),
    catalog: MenuCatalog = Depends(get_menu_catalog),
) -> list[MenuItem]:
    return await catalog.list_items(category)


@app.post(
    "/api/menu",
    responses={201: {"model": MenuItem}, 200: {"model": MenuImportResponse}, 400: {"model": ErrorResponse}},
    tags=["Menu"],
    summary="Add one item (JSON) or import a spreadsheet (multipart 'file')",
)
async def create_menu_item(
    request: Request,
    catalog: MenuCatalog = Depends(get_menu_catalog),
) -> JSONResponse:
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise ValidationError("No file uploaded")
        content = await upload.read()
        result = await catalog.import_file(upload.filename or "", content)
        return JSONResponse(result.model_dump(mode="json", by_alias=True))

    try:
        payload = MenuItemCreate.model_validate(await read_json_object(request))
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e

    item = await catalog.create_item(payload)
    return JSONResponse(item.model_dump(mode="json", by_alias=True), status_code=201)


@app.patch("/api/menu/{item_id}", response_model=MenuItem, tags=["Menu"])
async def update_menu_item(
    item_id: str,
    payload: MenuItemUpdate,
    catalog: MenuCatalog = Depends(get_menu_catalog),
) -> MenuItem:
    return await catalog.update_item(item_id, payload)


@app.delete("/api/menu/{item_id}", response_model=SuccessResponse, tags=["Menu"])
async def delete_menu_item(
    item_id: str,
    catalog: MenuCatalog = Depends(get_menu_catalog),
) -> SuccessResponse:
    await catalog.delete_item(item_id)
    return SuccessResponse()


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get("/api/orders", response_model=list[Order], tags=["Orders"])
async def list_orders(
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    orders: OrderService = Depends(get_order_service),
) -> list[Order]:
    """All orders, newest first."""
    return await orders.list_orders(status)


@app.get("/api/orders/{order_id}", response_model=Order, tags=["Orders"])
async def get_order(
    order_id: str,
    orders: OrderService = Depends(get_order_service),
) -> Order:
    return await orders.get_order(order_id)


@app.patch(
    "/api/orders/{order_id}",
    response_model=Order,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def update_order_status(
    order_id: str,
    request: Request,
    orders: OrderService = Depends(get_order_service),
) -> Order:
    """Move an order to preparing, delivered or rejected."""
    payload = OrderStatusUpdate.model_validate(await read_json_object(request))
    return await orders.update_status(order_id, payload.status)


# =============================================================================
# REAL-TIME FEED & DASHBOARD
# =============================================================================

@app.websocket("/ws/orders")
async def orders_feed(
    websocket: WebSocket,
    broker: BaseOrderBroker = Depends(get_order_broker),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> None:
    """Push order inserts and updates to one dashboard viewer."""
    await websocket.accept()

    async def load_orders() -> list[Order]:
        async with session_factory() as db:
            return await OrderDeskStore(db).get_orders()

    await serve_dashboard(websocket, broker, load_orders)


@app.get(
    "/dashboard",
    response_class=HTMLResponse,
    tags=["Dashboard"],
)
async def dashboard_page(request: Request) -> HTMLResponse:
    """Serve the dashboard UI."""
    return templates.TemplateResponse(request, "dashboard.html", {"app_name": settings.app_name})


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderDeskError)
async def order_desk_exception_handler(request: Request, exc: OrderDeskError) -> JSONResponse:
    """Render application errors with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    uvicorn.run(
        "orderdesk.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
