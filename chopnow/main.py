import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

import socketio
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, config, db
from .deps import get_store
from .errors import ChopNowError
from .metrics import MetricsMiddleware, metrics_endpoint
from .notifier import SocketIONotifier
from .realtime import sio
from .routers import auth, deliveries, menu, orders, restaurants, reviews
from .store import EphemeralStore


# ----- Logging -----
class CorrelationIdFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] [chopnow] [cid=%(correlation_id)s] %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(CorrelationIdFilter())
logger = logging.getLogger("chopnow")


# ----- Init -----
@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    app.state.notifier.bind_loop(asyncio.get_running_loop())
    logger.info("chopnow started")
    yield
    logger.info("chopnow stopping")


app = FastAPI(title="chopnow", version=__version__, lifespan=lifespan)
app.state.notifier = SocketIONotifier(sio)
app.add_middleware(MetricsMiddleware, service_name="chopnow")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    cid = request.headers.get("x-correlation-id") or str(uuid.uuid4())
    request.state.correlation_id = cid
    response = await call_next(request)
    response.headers["X-Correlation-Id"] = cid
    return response


# ----- Error envelope -----
def _error(status_code: int, message: str, errors=None) -> JSONResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(ChopNowError)
async def chopnow_error_handler(request: Request, exc: ChopNowError):
    return _error(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc), "message": message})
    return _error(400, "Validation error", errors)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"
    return _error(exc.status_code, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    cid = getattr(request.state, "correlation_id", "-")
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", extra={"correlation_id": cid})
    return _error(500, "Internal server error")


# ----- Infra Endpoints -----
@app.get("/health")
def health(store: EphemeralStore = Depends(get_store)):
    return {"status": "ok", "service": "chopnow", "redis": store.ping()}


@app.get("/metrics")
def metrics():
    return metrics_endpoint()


# ----- API -----
app.include_router(auth.router)
app.include_router(restaurants.router)
app.include_router(menu.router)
app.include_router(orders.router)
app.include_router(deliveries.router)
app.include_router(reviews.router)

# uvicorn chopnow.main:asgi_app
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


def run():
    import os

    import uvicorn

    port = int(os.getenv("PORT", 5000))
    uvicorn.run(asgi_app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
