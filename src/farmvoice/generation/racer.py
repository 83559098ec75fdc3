"""Speculative primary/secondary generation with cancellation and clearance."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum

from farmvoice.config import RaceConfig
from farmvoice.errors import ConfigurationError, GenerationFailure, ProviderError, RateLimitedError
from farmvoice.generation.providers import TextGenerator
from farmvoice.types import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


class RaceState(str, Enum):
    DISPATCHED = "dispatched"
    RACING = "racing"
    CANCELLING = "cancelling"
    CLEARING = "clearing"
    SECONDARY_DISPATCHED = "secondary_dispatched"
    RESOLVED = "resolved"


# Once the race is in one of these states a primary outcome is no longer wanted.
_PRIMARY_ABANDONED = frozenset(
    {
        RaceState.CANCELLING,
        RaceState.CLEARING,
        RaceState.SECONDARY_DISPATCHED,
        RaceState.RESOLVED,
    }
)


@dataclass(slots=True)
class RaceTransition:
    state: RaceState
    at: float
    detail: str = ""


class GenerationRace:
    """State object for a single primary-vs-secondary race.

    Transitions:
    - DISPATCHED -> RACING: the primary call is in flight under its hard
      ceiling while the soft-deadline timer runs.
    - RACING -> RESOLVED: the primary answered before the deadline.
    - RACING -> SECONDARY_DISPATCHED: the primary failed before the deadline
      (rate limit switches to the higher rate-limit temperature). Nothing was
      cancelled, so there is no clearance pause.
    - RACING -> CANCELLING -> CLEARING -> SECONDARY_DISPATCHED: the deadline
      fired; the primary task is cancelled, then the race sleeps for the
      clearance pause so the provider can release the cancelled call's
      capacity before the secondary is sent.
    - SECONDARY_DISPATCHED -> RESOLVED: the secondary answered.

    A primary outcome arriving after the race left RACING is logged and
    dropped; only `run()` ever produces a result.
    """

    def __init__(
        self,
        primary: TextGenerator,
        secondary: TextGenerator,
        request: GenerationRequest,
        config: RaceConfig,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.request = request
        self.config = config
        self.state: RaceState | None = None
        self.history: list[RaceTransition] = []
        self.primary_error: BaseException | None = None
        self.secondary_error: BaseException | None = None
        self.cancelled_at: float | None = None
        self.secondary_dispatched_at: float | None = None
        self.discarded: list[str] = []

    def transitions(self) -> list[RaceState]:
        return [transition.state for transition in self.history]

    async def run(self) -> GenerationResult:
        self._transition(RaceState.DISPATCHED, self.primary.model)
        started = time.monotonic()
        primary_task = asyncio.create_task(
            self.primary.generate(self.request, timeout=self.config.primary_timeout_s)
        )
        primary_task.add_done_callback(self._on_primary_done)
        self._transition(RaceState.RACING)

        try:
            done, _ = await asyncio.wait({primary_task}, timeout=self.config.soft_deadline_s)

            if primary_task in done:
                error = primary_task.exception()
                if error is None:
                    return self._resolve(
                        primary_task.result(), self.primary.model, started, fallback_used=False
                    )
                return await self._after_primary_failure(error)

            self._transition(RaceState.CANCELLING, f"soft deadline {self.config.soft_deadline_s}s")
            logger.info(
                "primary %s exceeded %.1fs, cancelling",
                self.primary.model,
                self.config.soft_deadline_s,
            )
            primary_task.cancel()
            self.cancelled_at = time.monotonic()

            self._transition(RaceState.CLEARING, f"{self.config.clearance_pause_s}s")
            await asyncio.sleep(self.config.clearance_pause_s)

            return await self._run_secondary(self.config.fallback_temperature, "soft_deadline")
        finally:
            if not primary_task.done():
                primary_task.cancel()

    async def _after_primary_failure(self, error: BaseException) -> GenerationResult:
        # ConfigurationError and programming errors are not provider failures.
        if not isinstance(error, ProviderError):
            raise error

        self.primary_error = error
        if isinstance(error, RateLimitedError):
            logger.info("primary %s rate limited, switching to secondary", self.primary.model)
            return await self._run_secondary(self.config.rate_limit_temperature, "rate_limited")

        logger.warning("primary %s failed (%s), switching to secondary", self.primary.model, error)
        return await self._run_secondary(self.config.fallback_temperature, "primary_failed")

    async def _run_secondary(self, temperature: float, reason: str) -> GenerationResult:
        self._transition(RaceState.SECONDARY_DISPATCHED, f"{reason} temperature={temperature}")
        self.secondary_dispatched_at = time.monotonic()
        request = replace(self.request, temperature=temperature)
        try:
            text = await asyncio.wait_for(
                self.secondary.generate(request, timeout=self.config.secondary_timeout_s),
                timeout=self.config.secondary_timeout_s,
            )
        except ConfigurationError:
            raise
        except (ProviderError, asyncio.TimeoutError) as exc:
            self.secondary_error = exc
            primary_error: BaseException | str | None = self.primary_error
            if primary_error is None:
                primary_error = f"abandoned after {self.config.soft_deadline_s}s soft deadline"
            logger.error("secondary %s failed after %s: %s", self.secondary.model, reason, exc)
            raise GenerationFailure(primary_error=primary_error, secondary_error=exc) from exc

        return self._resolve(
            text, self.secondary.model, self.secondary_dispatched_at, fallback_used=True
        )

    def _resolve(
        self, text: str, model: str, started: float, *, fallback_used: bool
    ) -> GenerationResult:
        latency_ms = (time.monotonic() - started) * 1000.0
        self._transition(RaceState.RESOLVED, model)
        logger.info(
            "race resolved model=%s fallback=%s latency_ms=%.0f chars=%d",
            model,
            fallback_used,
            latency_ms,
            len(text),
        )
        return GenerationResult(
            text=text, model=model, latency_ms=latency_ms, fallback_used=fallback_used
        )

    def _on_primary_done(self, task: asyncio.Task[str]) -> None:
        if task.cancelled():
            logger.debug("primary %s cancelled", self.primary.model)
            return
        error = task.exception()
        if self.state not in _PRIMARY_ABANDONED:
            return
        outcome = f"error: {error}" if error is not None else "result"
        self.discarded.append(outcome)
        logger.info(
            "late primary %s from %s discarded (race %s)",
            outcome,
            self.primary.model,
            self.state.value if self.state else "unknown",
        )

    def _transition(self, state: RaceState, detail: str = "") -> None:
        self.state = state
        self.history.append(RaceTransition(state=state, at=time.monotonic(), detail=detail))
        logger.debug("race -> %s %s", state.value, detail)


class GenerationRacer:
    """Entry point for generation: the full race or the secondary-only fast path."""

    def __init__(
        self,
        primary: TextGenerator,
        secondary: TextGenerator,
        config: RaceConfig | None = None,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.config = config or RaceConfig()

    def start(self, request: GenerationRequest) -> GenerationRace:
        """Build the per-invocation race; call `run()` on it to execute."""
        return GenerationRace(self.primary, self.secondary, request, self.config)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        return await self.start(request).run()

    async def generate_direct(self, request: GenerationRequest) -> GenerationResult:
        """Call the secondary model only, skipping the race."""
        started = time.monotonic()
        logger.info(
            "fast path: %s max_tokens=%d temperature=%.2f",
            self.secondary.model,
            request.max_tokens,
            request.temperature,
        )
        try:
            text = await asyncio.wait_for(
                self.secondary.generate(request, timeout=self.config.secondary_timeout_s),
                timeout=self.config.secondary_timeout_s,
            )
        except ConfigurationError:
            raise
        except (ProviderError, asyncio.TimeoutError) as exc:
            raise GenerationFailure(
                primary_error="not dispatched (fast path)", secondary_error=exc
            ) from exc
        return GenerationResult(
            text=text,
            model=self.secondary.model,
            latency_ms=(time.monotonic() - started) * 1000.0,
            fallback_used=False,
        )
