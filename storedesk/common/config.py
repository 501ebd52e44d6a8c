import os
from dataclasses import dataclass


def _get_bool(env_name: str, default: bool = False) -> bool:
    val = os.getenv(env_name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    # App
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))

    # Upstream order/discount service
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://api:3000/api")
    API_TOKEN: str = os.getenv("API_TOKEN", "")
    # 0 disables the client timeout; status calls may stay in flight indefinitely
    API_TIMEOUT_SECONDS: float = float(os.getenv("API_TIMEOUT_SECONDS", "0"))

    # Redis (realtime order channel)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "redis")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_USERNAME: str = os.getenv("REDIS_USERNAME", "")
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_SSL: bool = _get_bool("REDIS_SSL", False)
    REDIS_ORDER_CHANNEL_TEMPLATE: str = os.getenv("REDIS_ORDER_CHANNEL_TEMPLATE", "business:{business_id}:orders")

    # Reconnection backoff for the realtime subscription
    REALTIME_BACKOFF_INITIAL: float = float(os.getenv("REALTIME_BACKOFF_INITIAL", "1.0"))
    REALTIME_BACKOFF_MAX: float = float(os.getenv("REALTIME_BACKOFF_MAX", "15.0"))

    # Orders
    ARRIVAL_CODE_LENGTH: int = int(os.getenv("ARRIVAL_CODE_LENGTH", "6"))
    # Desks nobody has touched for this long lose their channel subscription
    DESK_IDLE_SECONDS: float = float(os.getenv("DESK_IDLE_SECONDS", "300"))
    DESK_MAX_OPEN: int = int(os.getenv("DESK_MAX_OPEN", "100"))

    # Per-client buffer of the SSE relay
    SSE_QUEUE_MAX: int = int(os.getenv("SSE_QUEUE_MAX", "256"))

    # Discounts
    LOCAL_TIMEZONE: str = os.getenv("LOCAL_TIMEZONE", "UTC")
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₱")

    def order_channel(self, business_id: str) -> str:
        return self.REDIS_ORDER_CHANNEL_TEMPLATE.format(business_id=business_id)


settings = Settings()
