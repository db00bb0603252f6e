import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .checkout import CheckoutService
from .errors import ConfirmationDeliveryError, OrderPersistenceError
from .log import configure_logging, get_logger
from .mailer import SmtpMailer
from .models import CheckoutReceipt, ConfirmationFailedOut, ErrorOut, OrderPayload, StoredOrder
from .store import PostgresOrderStore

logger = get_logger(__name__)


def create_app(store=None, notifier=None, clock=None) -> FastAPI:
    """Build the API. Collaborators not passed in are built from the environment at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        owned = []
        active_store, active_notifier = store, notifier
        if active_store is None:
            active_store = PostgresOrderStore.from_env()
            owned.append(active_store)
        if active_notifier is None:
            active_notifier = SmtpMailer.from_env()
            owned.append(active_notifier)
        app.state.store = active_store
        kwargs = {"clock": clock} if clock else {}
        app.state.checkout = CheckoutService(active_store, active_notifier, **kwargs)
        yield
        for resource in owned:
            resource.close()

    app = FastAPI(title="Storefront Checkout API", version="0.1.0", lifespan=lifespan)
    register_error_handlers(app)
    register_routes(app)
    return app


def get_checkout(request: Request) -> CheckoutService:
    return request.app.state.checkout


def get_store(request: Request):
    return request.app.state.store


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        issues = []
        for error in exc.errors():
            # drop the leading "body" / "path" segment
            field = ".".join(str(part) for part in error["loc"][1:])
            issues.append({"field": field, "message": error["msg"]})
        summary = ", ".join(f"{i['field']}: {i['message']}" if i["field"] else i["message"] for i in issues)
        return JSONResponse(
            status_code=400,
            content={"message": f"Invalid checkout payload: {summary}", "errors": issues},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(OrderPersistenceError)
    async def persistence_error(request: Request, exc: OrderPersistenceError):
        return JSONResponse(status_code=500, content={"message": str(exc)})

    @app.exception_handler(ConfirmationDeliveryError)
    async def confirmation_error(request: Request, exc: ConfirmationDeliveryError):
        body = ConfirmationFailedOut(message=str(exc), **exc.receipt.model_dump())
        return JSONResponse(status_code=502, content=body.model_dump(mode="json", by_alias=True))


def register_routes(app: FastAPI) -> None:
    # Health

    @app.get("/health/db")
    def health_db(store=Depends(get_store)):
        try:
            return {"db_ok": store.ping()}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return JSONResponse(status_code=500, content={"db_ok": False, "error": str(e)})

    # Checkout

    @app.post(
        "/api/checkout",
        response_model=CheckoutReceipt,
        responses={400: {"model": ErrorOut}, 500: {"model": ErrorOut}, 502: {"model": ConfirmationFailedOut}},
    )
    def checkout(body: OrderPayload, service: CheckoutService = Depends(get_checkout)):
        return service.place_order(body)

    # Orders

    @app.get(
        "/api/orders/{order_id}",
        response_model=StoredOrder,
        responses={400: {"model": ErrorOut}, 404: {"model": ErrorOut}, 500: {"model": ErrorOut}},
    )
    def get_order(order_id: str, service: CheckoutService = Depends(get_checkout)):
        try:
            uuid.UUID(order_id)
        except ValueError:
            raise HTTPException(400, "Invalid order id")
        order = service.get_order(order_id)
        if order is None:
            raise HTTPException(404, "Order not found")
        return order


app = create_app()
