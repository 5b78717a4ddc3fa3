from contextlib import asynccontextmanager
from threading import RLock

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from freshtrace.api.v1 import index
from freshtrace.api.v1 import participants
from freshtrace.api.v1 import products
from freshtrace.api.v1 import events

from freshtrace.core.config import settings
from freshtrace.core.events import EventBus
from freshtrace.core.exceptions import LedgerError
from freshtrace.core.logging import setup_logging
from freshtrace.db.core import engine, init_db
from freshtrace.services.ledger import LedgerService

setup_logging()


def create_app(bind: Engine = engine) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(bind)
        with Session(bind) as session:
            LedgerService(
                session, events=app.state.event_bus, lock=app.state.ledger_lock
            ).initialize(settings.owner_address, settings.owner_name, settings.owner_contact)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # One bus and one lock per ledger; every request's service shares them
    app.state.engine = bind
    app.state.event_bus = EventBus()
    app.state.ledger_lock = RLock()

    # Middlewares
    origins = []

    if settings.allowed_hosts:
        origins = settings.allowed_hosts.split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.name},
        )

    # Register routes
    app.include_router(index.router, prefix="/api/v1")
    app.include_router(participants.router,
                       prefix="/api/v1/participants", tags=["Participants"])
    app.include_router(products.router, prefix="/api/v1/products")
    app.include_router(events.router, prefix="/api/v1/events", tags=["Events"])

    # Static files serving (QR codes)
    app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

    logger.info(f"{settings.app_name} configured")
    return app


app = create_app()


def run():
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )


if __name__ == "__main__":
    run()
