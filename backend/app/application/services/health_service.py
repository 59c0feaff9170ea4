from redis import Redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.infrastructure.cache.redis_client import redis_is_available
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


def database_is_available(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("health_database_unavailable", error=str(exc))
        return False
    return True


def get_service_status(db: Session, redis_client: Redis) -> dict:
    return {
        "message": f"Hello from {settings.app_name}",
        "version": settings.app_version,
        "db_connected": database_is_available(db),
        "redis_connected": redis_is_available(redis_client),
    }
