from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from .errors import ConfigError, UpstreamError
from .types import (
    ConfigMissing,
    DispatchOutcome,
    ProviderReply,
    Success,
    TimedOut,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

# Must stay below the host's 10 s execution ceiling.
DEFAULT_DEADLINE_SECONDS = 9.5


class OperationCancelled(Exception):
    """Raised by an outbound call that observed its token being cancelled."""


class CancellationToken:
    """Cooperative cancellation handle for a single outbound call.

    The call should pass ``remaining()`` as its transport timeout and call
    ``raise_if_cancelled()`` at each of its suspend points.
    """

    def __init__(self, deadline: float) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._expires_at = loop.time() + deadline
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._loop.time())

    def raise_if_cancelled(self) -> None:
        if self.cancelled or self.remaining() <= 0:
            self.cancel()
            raise OperationCancelled()


ProviderCall = Callable[[CancellationToken], Awaitable[ProviderReply]]


async def dispatch(call: ProviderCall, deadline: float) -> DispatchOutcome:
    """Run one provider call under its own hard deadline.

    Expiry, cooperative cancellation and transport timeouts are all reported
    as ``TimedOut`` so fallback logic can tell "too slow" from "rejected".
    """

    token = CancellationToken(deadline)
    try:
        async with asyncio.timeout(deadline):
            reply = await call(token)
    except TimeoutError:
        token.cancel()
        logger.warning("Provider call cancelled after %.2fs deadline", deadline)
        return TimedOut(f"Provider did not respond within {deadline:g}s")
    except OperationCancelled:
        token.cancel()
        return TimedOut(f"Provider did not respond within {deadline:g}s")
    except httpx.TimeoutException as exc:
        token.cancel()
        logger.warning("Provider transport timed out: %s", exc.__class__.__name__)
        return TimedOut(f"Provider did not respond within {deadline:g}s")
    except ConfigError as exc:
        return ConfigMissing(exc.missing_key)
    except UpstreamError as exc:
        return UpstreamFailure(exc.upstream_status, exc.message)
    except httpx.HTTPError as exc:
        return UpstreamFailure(None, f"{exc.__class__.__name__}: {exc}")

    return Success(reply)
