import asyncio
import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from solar_weather_mcp.adapters import SourceAdapter
from solar_weather_mcp.models import Coordinates, RawEnvironmentReading, SourceAttempt, SourceKind
from solar_weather_mcp.synthetic import SyntheticAdapter
from solar_weather_mcp.validation import validate_reading, validate_timestamp

logger = logging.getLogger("solar_weather.orchestrator")


class SelectionState(str, Enum):
    TRY_PRIMARY = "TRY_PRIMARY"
    TRY_SECONDARY = "TRY_SECONDARY"
    USE_SYNTHETIC_FALLBACK = "USE_SYNTHETIC_FALLBACK"
    DONE = "DONE"


class SourceSelection(BaseModel):
    """Terminal output of the fallback state machine"""

    model_config = ConfigDict(frozen=True)

    reading: RawEnvironmentReading
    source_id: str
    source_kind: SourceKind
    attempts: List[SourceAttempt]
    elapsed_ms: float


class SourceSelector:
    """Tries the primary, then the secondary source, then synthesizes a reading.

    Transitions:
      TRY_PRIMARY            -> DONE on a fetched reading that passes validation
      TRY_PRIMARY            -> TRY_SECONDARY on adapter or validation failure
      TRY_PRIMARY            -> TRY_SECONDARY, skipped, once the deadline has passed
      TRY_SECONDARY          -> DONE on a fetched reading with a sane capture time
      TRY_SECONDARY          -> USE_SYNTHETIC_FALLBACK on adapter or capture time failure
      TRY_SECONDARY          -> USE_SYNTHETIC_FALLBACK, skipped, once the deadline has passed
      USE_SYNTHETIC_FALLBACK -> DONE, always
    Secondary readings are not range-checked beyond their capture time.
    """

    def __init__(
        self,
        primary: SourceAdapter,
        secondary: SourceAdapter,
        fallback: Optional[SyntheticAdapter] = None,
        monotonic: Callable[[], float] = time.monotonic,
        clock: Callable[[], float] = time.time,
    ):
        self.primary = primary
        self.secondary = secondary
        self.fallback = fallback or SyntheticAdapter()
        self._monotonic = monotonic
        self._clock = clock

    async def select(self, coords: Coordinates, deadline_seconds: Optional[float] = None) -> SourceSelection:
        started = self._monotonic()
        deadline = started + deadline_seconds if deadline_seconds is not None else None
        attempts: List[SourceAttempt] = []
        reading: Optional[RawEnvironmentReading] = None
        chosen: Optional[SourceAdapter] = None
        kind = SourceKind.PRIMARY
        state = SelectionState.TRY_PRIMARY

        while state != SelectionState.DONE:
            logger.debug(f"Source selection state: {state.value}")

            if state in (SelectionState.TRY_PRIMARY, SelectionState.TRY_SECONDARY):
                is_primary = state == SelectionState.TRY_PRIMARY
                adapter = self.primary if is_primary else self.secondary
                attempt_kind = SourceKind.PRIMARY if is_primary else SourceKind.SECONDARY
                next_state = SelectionState.TRY_SECONDARY if is_primary else SelectionState.USE_SYNTHETIC_FALLBACK

                remaining = self._remaining(deadline)
                if remaining is not None and remaining <= 0:
                    logger.warning(f"Deadline reached, skipping {adapter.source_id}")
                    attempts.append(
                        SourceAttempt(
                            source_id=adapter.source_id,
                            kind=attempt_kind,
                            succeeded=False,
                            error="skipped: deadline exceeded",
                        )
                    )
                    state = next_state
                    continue

                try:
                    candidate = await self._fetch(adapter, coords, remaining)
                    if is_primary:
                        validate_reading(candidate, now=self._clock())
                    else:
                        validate_timestamp(candidate.captured_at, now=self._clock())
                except Exception as e:
                    error = str(e) or type(e).__name__
                    logger.warning(f"{attempt_kind.value.capitalize()} source {adapter.source_id} failed: {error}")
                    attempts.append(
                        SourceAttempt(source_id=adapter.source_id, kind=attempt_kind, succeeded=False, error=error)
                    )
                    state = next_state
                    continue

                attempts.append(SourceAttempt(source_id=adapter.source_id, kind=attempt_kind, succeeded=True))
                reading, chosen, kind = candidate, adapter, attempt_kind
                state = SelectionState.DONE

            elif state == SelectionState.USE_SYNTHETIC_FALLBACK:
                logger.error("All live sources failed, activating climatological fallback")
                reading = self.fallback.generate(coords)
                attempts.append(
                    SourceAttempt(source_id=self.fallback.source_id, kind=SourceKind.SYNTHETIC, succeeded=True)
                )
                chosen, kind = self.fallback, SourceKind.SYNTHETIC
                state = SelectionState.DONE

        elapsed_ms = (self._monotonic() - started) * 1000
        logger.info(f"Selected source {chosen.source_id} ({kind.value}) in {elapsed_ms:.1f} ms")
        return SourceSelection(
            reading=reading,
            source_id=chosen.source_id,
            source_kind=kind,
            attempts=attempts,
            elapsed_ms=elapsed_ms,
        )

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return deadline - self._monotonic()

    async def _fetch(
        self, adapter: SourceAdapter, coords: Coordinates, remaining: Optional[float]
    ) -> RawEnvironmentReading:
        if remaining is None:
            return await adapter.fetch(coords)
        try:
            return await asyncio.wait_for(adapter.fetch(coords), timeout=remaining)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"{adapter.source_id}: deadline exceeded") from e
