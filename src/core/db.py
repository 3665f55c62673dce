from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from core.config import settings

# make sure all SQLModel models are imported (models) before initializing DB
# otherwise, SQLModel might fail to initialize relationships properly
# for more details: https://github.com/tiangolo/full-stack-fastapi-postgresql/issues/28
import models  # noqa: F401


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # one shared connection so every thread sees the same in-memory database
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {"pool_pre_ping": True}


engine = create_engine(
    str(settings.SQLALCHEMY_DATABASE_URI),
    **_engine_options(str(settings.SQLALCHEMY_DATABASE_URI)),
)


def init_db(session: Session) -> None:
    # deployed databases are migrated with alembic, this covers local runs and tests
    SQLModel.metadata.create_all(session.get_bind())
