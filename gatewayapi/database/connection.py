from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gatewayapi.config import settings


def build_engine(url: str, debug: bool = False):
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=debug,
        )

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # validate connections before use
        pool_recycle=3600,
        echo=debug,  # SQL logging in debug mode
    )


engine = build_engine(settings.database_url, debug=settings.DEBUG)

# Use expire_on_commit=False to avoid DetachedInstanceError when accessing
# attributes after commit within the same request scope (common FastAPI pattern).
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)
