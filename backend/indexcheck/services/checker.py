"""Exact-URL index checks against the Programmable Search JSON API.

All failure modes come back as a ``CheckResult`` with status ERROR; nothing
here raises for network, HTTP or payload problems.
"""
import enum
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from indexcheck.core.config import settings
from indexcheck.models.campaign import ItemStatus

logger = logging.getLogger(__name__)

REASON_LIMIT = 200
TEXT_LIMIT = 500

MISSING_CREDENTIALS_REASON = "Missing search API credentials"
NOT_INDEXED_REASON = "No exact match found in search results"


class CheckErrorKind(str, enum.Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"


RETRIABLE_KINDS = {CheckErrorKind.TIMEOUT, CheckErrorKind.RATE_LIMITED, CheckErrorKind.SERVER_ERROR}
RETRIABLE_STATUS_CODES = {500, 502, 503}


@dataclass
class CheckResult:
    status: ItemStatus
    title: str = ""
    snippet: str = ""
    reason: Optional[str] = None
    error_kind: Optional[CheckErrorKind] = None

    @classmethod
    def error(cls, kind: CheckErrorKind, reason: str) -> "CheckResult":
        return cls(status=ItemStatus.ERROR, reason=reason[:REASON_LIMIT], error_kind=kind)


def kind_for_status(status_code: int) -> CheckErrorKind:
    if status_code == 429:
        return CheckErrorKind.RATE_LIMITED
    if status_code in RETRIABLE_STATUS_CODES:
        return CheckErrorKind.SERVER_ERROR
    return CheckErrorKind.CLIENT_ERROR


def kind_from_reason(reason: Optional[str]) -> Optional[CheckErrorKind]:
    """Best-effort classification of a bare reason string."""
    text = (reason or "").lower()
    if "timeout" in text:
        return CheckErrorKind.TIMEOUT
    if "429" in text:
        return CheckErrorKind.RATE_LIMITED
    if any(str(code) in text for code in RETRIABLE_STATUS_CODES):
        return CheckErrorKind.SERVER_ERROR
    return None


def is_retriable(result: CheckResult) -> bool:
    if result.status != ItemStatus.ERROR:
        return False
    kind = result.error_kind or kind_from_reason(result.reason)
    return kind in RETRIABLE_KINDS


def _strip_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url

def _text(value) -> str:
    return value if isinstance(value, str) else ""



def _provider_message(r: httpx.Response) -> str:
    message = f"API error: {r.status_code}"
    try:
        data = r.json()
    except ValueError:
        return message
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return message


def check_once(
    url: str,
    api_key: Optional[str],
    engine_id: Optional[str],
    *,
    client: Optional[httpx.Client] = None,
    timeout_s: float = settings.check_timeout_seconds,
) -> CheckResult:
    """Run one exact-phrase query for ``url`` and classify the answer.

    ``api_key``/``engine_id`` are the provider key and search engine id.
    """
    if not api_key or not engine_id:
        return CheckResult.error(CheckErrorKind.MISSING_CREDENTIALS, MISSING_CREDENTIALS_REASON)

    params = {
        "key": api_key,
        "cx": engine_id,
        "q": f'"{url}"',
        "num": settings.check_result_count,
    }
    try:
        if client is None:
            with httpx.Client(timeout=timeout_s) as http:
                r = http.get(settings.search_api_endpoint, params=params)
        else:
            r = client.get(settings.search_api_endpoint, params=params, timeout=timeout_s)
    except httpx.TimeoutException:
        return CheckResult.error(CheckErrorKind.TIMEOUT, f"Request timeout ({timeout_s:g}s)")
    except httpx.RequestError as e:
        return CheckResult.error(CheckErrorKind.NETWORK, str(e) or type(e).__name__)

    if not r.is_success:
        return CheckResult.error(kind_for_status(r.status_code), _provider_message(r))

    try:
        data = r.json()
    except ValueError:
        return CheckResult.error(CheckErrorKind.MALFORMED_RESPONSE, "Malformed API response: not JSON")
    if not isinstance(data, dict):
        return CheckResult.error(CheckErrorKind.MALFORMED_RESPONSE, "Malformed API response: unexpected shape")

    items = data.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        return CheckResult.error(CheckErrorKind.MALFORMED_RESPONSE, "Malformed API response: items is not a list")

    wanted = _strip_slash(url)
    for item in items:
        if not isinstance(item, dict):
            continue
        link = item.get("link")
        if isinstance(link, str) and _strip_slash(link) == wanted:
            return CheckResult(
                status=ItemStatus.INDEXED,
                title=_text(item.get("title"))[:TEXT_LIMIT],
                snippet=_text(item.get("snippet")).replace("\n", " ")[:TEXT_LIMIT],
            )

    return CheckResult(status=ItemStatus.NOT_INDEXED, reason=NOT_INDEXED_REASON)


def backoff_delay(attempt: int) -> float:
    # 1s, 2s, 4s ... plus up to 500ms jitter
    return 2 ** attempt + random.uniform(0, 0.5)


def check_with_retry(
    url: str,
    api_key: Optional[str],
    engine_id: Optional[str],
    max_retries: int = settings.check_max_retries,
    *,
    check: Callable[..., CheckResult] = check_once,
    sleep: Callable[[float], None] = time.sleep,
    **check_kwargs,
) -> CheckResult:
    """Call ``check`` until it returns a non-retriable result or retries run out.

    INDEXED and NOT_INDEXED are final on the first attempt.
    """
    result = check(url, api_key, engine_id, **check_kwargs)
    attempt = 0
    while is_retriable(result) and attempt < max_retries:
        delay = backoff_delay(attempt)
        logger.info("Retrying %s in %.2fs after %s (attempt %d/%d)", url, delay, result.reason, attempt + 1, max_retries)
        sleep(delay)
        attempt += 1
        result = check(url, api_key, engine_id, **check_kwargs)
    return result
