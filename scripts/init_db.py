import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gatewayapi.database.connection import engine
from gatewayapi.config import settings
from gatewayapi.models import Base


def init_db():
    """Create every table that does not exist yet"""
    try:
        Base.metadata.create_all(bind=engine)
        print(f"Database initialized successfully ({settings.ENVIRONMENT})")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    init_db()
