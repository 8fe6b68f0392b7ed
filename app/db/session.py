from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL,
                       connect_args=_connect_args(settings.DATABASE_URL),
                       pool_pre_ping=True,
                       pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# Dependency that can be used in routes to get the session factory.
# The user directory and session store open one session per call, each call runs on
# the thread pool, so a request never shares an ORM session across threads.
def get_session_factory() -> sessionmaker:
    return SessionLocal


def init_db() -> None:
    # import the models so they are registered on Base.metadata
    import app.models.auth  # noqa: F401
    import app.models.users  # noqa: F401
    from app.db.base import Base

    Base.metadata.create_all(bind=engine)
