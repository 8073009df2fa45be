from __future__ import annotations

import logging
from typing import Callable, Sequence

from .deadline import ProviderCall, dispatch
from .types import (
    CascadeEndpoint,
    CascadeExhausted,
    ConfigMissing,
    DispatchOutcome,
    Success,
    TimedOut,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)


class VersionCascade:
    """Try an ordered list of (api_version, model_id) endpoints until one answers.

    Every attempt gets its own deadline window. Failures never stop the walk
    early; when the list runs out the last failure is the reported cause.
    """

    def __init__(self, endpoints: Sequence[CascadeEndpoint]) -> None:
        self.endpoints = tuple(endpoints)

    async def try_all(
        self,
        call_for: Callable[[CascadeEndpoint], ProviderCall],
        deadline: float,
    ) -> DispatchOutcome:
        last: TimedOut | UpstreamFailure = UpstreamFailure(None, "No endpoints configured")
        attempts = 0

        for endpoint in self.endpoints:
            attempts += 1
            logger.info("Cascade attempt %d: %s", attempts, endpoint)
            outcome = await dispatch(call_for(endpoint), deadline)

            if isinstance(outcome, Success):
                return outcome

            if isinstance(outcome, ConfigMissing):
                return outcome

            logger.warning("Cascade endpoint %s failed: %s", endpoint, outcome.describe())
            if isinstance(outcome, CascadeExhausted):
                last = outcome.last
            else:
                last = outcome

        return CascadeExhausted(attempts=attempts, last=last)
