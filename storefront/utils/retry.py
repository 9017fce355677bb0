# storefront/utils/retry.py
from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import requests
import redis

from storefront.domain.errors import TransportError


def http_retry():
    #tylko bledy polaczenia, odpowiedz 4xx/5xx nie jest ponawiana
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.transient


def region_update_retry(attempts: int):
    #przejsciowy blad sieci nie moze od razu wyrzucac koszyka
    return retry(
        reraise=True,
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception(_is_transient),
    )
