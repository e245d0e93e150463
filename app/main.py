import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.cache import cache
from app.config import settings
from app.database import dispose_engine
from app.exceptions import CommentServiceError
from app.middleware import TimingMiddleware
from app.routers import comments, metrics

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Starting without Redis: %s", exc)
    yield
    # Shutdown
    await cache.disconnect()
    await dispose_engine()

app = FastAPI(
    title="Blog Comments API",
    description="Comment lifecycle for the blog: create, like, edit, delete",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(comments.router)
app.include_router(metrics.router)


# ---------------------------------------------------------------------------
# Error envelope: {"success": false, "statusCode": ..., "message": ...}
# ---------------------------------------------------------------------------

def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "statusCode": status_code, "message": message},
    )

@app.exception_handler(CommentServiceError)
async def comment_error_handler(request: Request, exc: CommentServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _envelope(400, message)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail))

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(500, "Internal Server Error")

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
