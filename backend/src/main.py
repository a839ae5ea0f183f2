import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from api.accounts import router as accounts_router
from api.conversations import router as conversations_router
from api.errors import register_error_handlers
from api.group_messages import router as group_messages_router
from api.groups import router as groups_router
from api.health import router as health_router
from api.messages import router as messages_router
from api.orders import router as orders_router
from api.users import router as users_router
from config import settings
from core.database import Database
from storage.blob import BlobStore

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database.from_settings()
    await database.create_schema()
    app.state.database = database
    app.state.blob_store = BlobStore.from_settings()
    logger.info(
        "Database ready: schema=%s pool=%d+%d",
        settings.DB_SCHEMA,
        settings.DB_POOL_SIZE,
        settings.DB_MAX_OVERFLOW,
    )

    yield
    await app.state.blob_store.aclose()
    await database.dispose()
    logger.info("Connections closed")


app = FastAPI(title=settings.APP_NAME, version="2.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


app.add_middleware(SecurityHeadersMiddleware)
register_error_handlers(app)

app.include_router(health_router)
app.include_router(conversations_router)
app.include_router(messages_router)
app.include_router(users_router)
app.include_router(groups_router)
app.include_router(group_messages_router)
app.include_router(accounts_router)
app.include_router(orders_router)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME}", "version": app.version, "status": "/api/status"}
