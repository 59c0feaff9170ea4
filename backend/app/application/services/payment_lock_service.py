from contextlib import contextmanager
from collections.abc import Iterator

from app.application.errors import ConflictError
from app.config import settings
from app.infrastructure.cache.cache_service import acquire_lock, release_lock


def payment_request_lock_key(*, student_id: int) -> str:
    return f"payment_request_lock:{student_id}"


@contextmanager
def payment_request_creation_lock(*, student_id: int) -> Iterator[None]:
    lock_key = payment_request_lock_key(student_id=student_id)
    lock_token = acquire_lock(lock_key, settings.payment_request_lock_ttl_seconds)
    if lock_token is None:
        raise ConflictError("A payment request is already being processed for this student")
    try:
        yield
    finally:
        release_lock(lock_key, lock_token)
