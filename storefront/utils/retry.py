# storefront/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import requests
import redis

from storefront.utils.settings import (
    HTTP_RETRY_ATTEMPTS,
    HTTP_RETRY_MAX_WAIT,
    REDIS_RETRY_ATTEMPTS,
    REDIS_RETRY_MAX_WAIT,
)


def http_retry(attempts: int = HTTP_RETRY_ATTEMPTS, max_wait: float = HTTP_RETRY_MAX_WAIT):
    #transport failures only, a 4xx answer is final
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=min(0.3, max_wait), max=max_wait),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )


def redis_retry(attempts: int = REDIS_RETRY_ATTEMPTS, max_wait: float = REDIS_RETRY_MAX_WAIT):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=min(0.2, max_wait), max=max_wait),
        retry=retry_if_exception_type(redis.RedisError),
    )
