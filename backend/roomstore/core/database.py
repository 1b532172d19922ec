import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    url = make_url(settings.database_url)
    kwargs = {"pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        # sqlite's own busy timeout bounds lock waits
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": settings.connect_timeout}
    else:
        kwargs["connect_args"] = {"connect_timeout": settings.connect_timeout}
        kwargs["pool_timeout"] = settings.pool_timeout

    logger.info("Creating database engine for %s", url.render_as_string(hide_password=True))
    return create_engine(url, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    # Records returned by the store outlive their session.
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine) -> None:
    from .. import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=bind)


engine = build_engine(get_settings())
SessionLocal = make_session_factory(engine)
