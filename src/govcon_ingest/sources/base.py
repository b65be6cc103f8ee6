"""Base class for government-contracting data sources.

Every public adapter method goes through ``_guarded``: it checks the
``enabled`` flag, waits on the source's rate limiter, performs exactly one
HTTP call, parses the body and reports a ``FetchOutcome``. Failures never
cross this boundary; the caller gets the method's empty default instead.
"""
from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import structlog

from ..config import SourceConfig
from ..models.outcome import FetchOutcome, OutcomeHook, OutcomeKind
from ..models.page import Page
from ..net import RateLimitConfig, RateLimiter

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Errors raised by parse callbacks on a body of the wrong shape.
# pydantic.ValidationError is a ValueError subclass.
PARSE_ERRORS = (ValueError, TypeError, KeyError, AttributeError)


def result_size(result: Any) -> int:
    if result is None:
        return 0
    if isinstance(result, (Page, list, tuple, dict)):
        return len(result)
    return 1


class BaseSource:
    """Shared request, rate-limit and outcome plumbing for one source."""

    name: str = "base"

    def __init__(
        self,
        config: SourceConfig,
        limiter: RateLimiter | None = None,
        client: httpx.AsyncClient | None = None,
        on_outcome: OutcomeHook | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            config: Source settings (endpoint, rate, limits, filter defaults)
            limiter: Rate limiter owned by this source; built from
                ``config.rate_limit_ms`` when omitted
            client: HTTP client to use; when omitted the source creates and
                owns one
            on_outcome: Called once with a ``FetchOutcome`` per public call
        """
        self.config = config
        self.limiter = limiter or RateLimiter(
            RateLimitConfig.from_ms(config.rate_limit_ms), name=self.name
        )
        self._client = client
        self._owns_client = client is None
        self._on_outcome = on_outcome

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _url(self, path: str = "") -> str:
        return f"{self.config.endpoint}{path}"

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"User-Agent": self.config.user_agent, "Accept": "application/json"},
            )
        return self._client

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        """JSON body of ``resp``; an empty body decodes to None."""
        if not resp.content.strip():
            return None
        return resp.json()

    async def _get_json(self, path: str = "", params: dict[str, Any] | None = None) -> Any:
        await self.limiter.acquire()
        resp = await self._http().get(self._url(path), params=params)
        resp.raise_for_status()
        return self._decode(resp)

    async def _post_json(self, path: str, body: dict[str, Any]) -> Any:
        await self.limiter.acquire()
        resp = await self._http().post(self._url(path), json=body)
        resp.raise_for_status()
        return self._decode(resp)

    async def _guarded(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        parse: Callable[[Any], T],
        default: Callable[[OutcomeKind], T],
        **context: Any,
    ) -> tuple[T, OutcomeKind]:
        """Run one request with full failure containment.

        Args:
            operation: Name used in logs and outcomes
            call: Zero-argument coroutine factory performing the request
            parse: Turns the decoded body into the result
            default: Builds the empty result for a non-OK outcome
            **context: Extra key/value pairs for log lines

        Returns:
            The parsed result (or the default) and the outcome kind.
        """
        if not self.enabled:
            logger.debug("source.disabled", source=self.name, operation=operation)
            self._emit(operation, OutcomeKind.DISABLED)
            return default(OutcomeKind.DISABLED), OutcomeKind.DISABLED

        started = time.perf_counter()
        try:
            body = await call()
        except httpx.HTTPError as e:
            return self._failed(operation, OutcomeKind.TRANSPORT_ERROR, e, started, default, context)
        except ValueError as e:
            # Body was not valid JSON
            return self._failed(operation, OutcomeKind.PARSE_ERROR, e, started, default, context)
        except Exception as e:
            return self._failed(operation, OutcomeKind.UNEXPECTED_ERROR, e, started, default, context)

        try:
            result = parse(body)
        except PARSE_ERRORS as e:
            return self._failed(operation, OutcomeKind.PARSE_ERROR, e, started, default, context)
        except Exception as e:
            return self._failed(operation, OutcomeKind.UNEXPECTED_ERROR, e, started, default, context)

        count = result_size(result)
        kind = OutcomeKind.OK if count else OutcomeKind.NO_MATCH
        elapsed_ms = (time.perf_counter() - started) * 1000
        if count:
            logger.info("source.fetched", source=self.name, operation=operation, records=count, **context)
        else:
            logger.debug("source.no_match", source=self.name, operation=operation, **context)
        self._emit(operation, kind, count, elapsed_ms)
        return result, kind

    def _failed(
        self,
        operation: str,
        kind: OutcomeKind,
        error: Exception,
        started: float,
        default: Callable[[OutcomeKind], T],
        context: dict[str, Any],
    ) -> tuple[T, OutcomeKind]:
        elapsed_ms = (time.perf_counter() - started) * 1000
        detail = f"{type(error).__name__}: {error}"
        if kind is OutcomeKind.UNEXPECTED_ERROR:
            logger.exception("source.unexpected_error", source=self.name, operation=operation, **context)
        elif kind is OutcomeKind.PARSE_ERROR:
            logger.warning("source.parse_failed", source=self.name, operation=operation, error=detail, **context)
        else:
            logger.error("source.request_failed", source=self.name, operation=operation, error=detail, **context)
        self._emit(operation, kind, 0, elapsed_ms, detail)
        return default(kind), kind

    def _skipped(self, operation: str, reason: str, default: T) -> T:
        """Report input rejected before any network call."""
        logger.debug("source.skipped", source=self.name, operation=operation, reason=reason)
        self._emit(operation, OutcomeKind.SKIPPED, detail=reason)
        return default

    def _emit(
        self,
        operation: str,
        kind: OutcomeKind,
        count: int = 0,
        elapsed_ms: float = 0.0,
        detail: str | None = None,
    ) -> None:
        if self._on_outcome is None:
            return
        outcome = FetchOutcome(
            source=self.name,
            operation=operation,
            kind=kind,
            record_count=count,
            elapsed_ms=round(elapsed_ms, 2),
            detail=detail,
        )
        try:
            self._on_outcome(outcome)
        except Exception:
            logger.exception("outcome_hook.failed", source=self.name, operation=operation)

    @staticmethod
    def _items(body: Any, key: str | None = None) -> list[dict[str, Any]]:
        """Pull the record list out of a decoded body.

        ``key`` selects a list inside a wrapper object; without it the body
        itself must be a JSON array. None (empty body) yields no items.
        """
        if body is None:
            return []
        if key is not None:
            if not isinstance(body, dict):
                raise TypeError(f"expected JSON object, got {type(body).__name__}")
            body = body.get(key) or []
        if not isinstance(body, list):
            raise TypeError(f"expected JSON array, got {type(body).__name__}")
        return [item for item in body if isinstance(item, dict)]

    async def close(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> BaseSource:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> bool:
        await self.close()
        return False
