from dataclasses import dataclass
from enum import Enum


class RateLimitAction(str, Enum):
    login = "login"
    payment_request = "payment_request"
    cancel_payment = "cancel_payment"
    change_password = "change_password"
    api = "api"
    strict = "strict"


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_seconds: int


RATE_LIMITS: dict[RateLimitAction, RateLimitConfig] = {
    RateLimitAction.login: RateLimitConfig(limit=3, window_seconds=60),
    RateLimitAction.payment_request: RateLimitConfig(limit=3, window_seconds=60),
    RateLimitAction.cancel_payment: RateLimitConfig(limit=3, window_seconds=60),
    RateLimitAction.change_password: RateLimitConfig(limit=3, window_seconds=60),
    RateLimitAction.api: RateLimitConfig(limit=100, window_seconds=60),
    RateLimitAction.strict: RateLimitConfig(limit=10, window_seconds=60),
}


def get_rate_limit_config(action: RateLimitAction | str) -> RateLimitConfig:
    return RATE_LIMITS[RateLimitAction(action)]
