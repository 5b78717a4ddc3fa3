from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from freshtrace.core.config import settings


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Requests are served from a thread pool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(settings.database_url)


def init_db(bind: Engine = engine) -> None:
    # Tables must be registered on the metadata before create_all
    from freshtrace.db import schema  # noqa: F401

    SQLModel.metadata.create_all(bind)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
