import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.database import engine, init_db
from .core.exceptions import NotFoundError, StorageError, ValidationError
from .routers import rooms, users
from .services.accounts import load_accounts
from .services.session_store import get_store

settings = get_settings()

logger = logging.getLogger(__name__)
logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    logger.info("Tables created successfully.")

    added = load_accounts(get_store(), settings.accounts)
    if added:
        logger.info("Provisioned %d account(s) from configuration", added)

    for room in get_store().list_rooms():
        logger.debug("Known room %s hosted by %s", room.id, room.host)
    yield


app = FastAPI(title="Room Session Store", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms.router)
app.include_router(users.router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    # details stay in the server log
    logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})
