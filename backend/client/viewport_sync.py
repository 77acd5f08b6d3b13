from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from client.transport import TurbineSource
from client.working_set import EMPTY_WORKING_SET, WorkingSet
from geo.aoi import BBox
from geo.projection import Viewport
from turbines.errors import QueryError, StoreUnavailable

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    idle = "idle"
    fetching = "fetching"
    error = "error"


class SyncOutcome(str, Enum):
    applied = "applied"
    # A newer request was issued while this one was in flight.
    discarded = "discarded"
    # Same settled viewport as the data already shown.
    skipped = "skipped"
    failed = "failed"


@dataclass(frozen=True)
class SyncResult:
    outcome: SyncOutcome
    seq: int
    box: BBox
    error: QueryError | None = None


class ViewportSync:
    """
    Keeps the working set in step with settled viewports.

    - One bbox query per settle event (never per frame); an identical settled
      viewport is not fetched twice.
    - Requests are tagged with increasing sequence numbers; only the response to
      the latest issued request is applied, so a slow, superseded response can
      never overwrite newer data. Superseded requests are not cancelled.
    - A successful response replaces the working set wholesale.
    - A failure leaves the working set untouched and records `last_error`;
      the next settle event retries.
    """

    def __init__(
        self,
        source: TurbineSource,
        *,
        limit: int | None = None,
        on_change: Callable[[WorkingSet], None] | None = None,
    ):
        self.source = source
        self.limit = limit
        self.on_change = on_change

        self.working_set: WorkingSet = EMPTY_WORKING_SET
        self.state: SyncState = SyncState.idle
        self.last_error: QueryError | None = None
        self.viewport: Viewport | None = None

        self._issued_seq = 0
        self._applied_seq = 0
        self._applied_key: tuple[float, float, float, float] | None = None
        self._in_flight = 0

    @property
    def issued_seq(self) -> int:
        return self._issued_seq

    @property
    def applied_seq(self) -> int:
        return self._applied_seq

    async def start(self, initial: Viewport) -> SyncResult:
        return await self.settle(initial)

    async def settle(self, viewport: Viewport) -> SyncResult:
        self.viewport = viewport
        box = viewport.bbox()
        key = box.rounded_key()
        if (
            key == self._applied_key
            and self._in_flight == 0
            and self.state is not SyncState.error
        ):
            logger.debug("Viewport %s already loaded; skipping fetch", key)
            return SyncResult(outcome=SyncOutcome.skipped, seq=self._applied_seq, box=box)

        self._issued_seq += 1
        seq = self._issued_seq
        self._in_flight += 1
        self.state = SyncState.fetching
        try:
            records = await self.source.fetch_bbox(box, limit=self.limit)
        except QueryError as e:
            return self._on_failure(seq, box, e)
        except Exception as e:
            logger.exception("Viewport fetch %d raised an unclassified error", seq)
            return self._on_failure(seq, box, StoreUnavailable(f"Fetch failed: {type(e).__name__}"))
        finally:
            self._in_flight -= 1

        return self._on_success(seq, box, key, records)

    def _on_success(self, seq, box, key, records) -> SyncResult:
        if seq != self._issued_seq:
            logger.debug("Discarding response %d (latest is %d)", seq, self._issued_seq)
            return SyncResult(outcome=SyncOutcome.discarded, seq=seq, box=box)

        # Swap in a fully built snapshot; readers never see a partial replace.
        self.working_set = WorkingSet.from_records(records)
        self._applied_seq = seq
        self._applied_key = key
        self.last_error = None
        self.state = SyncState.idle
        if self.on_change is not None:
            self.on_change(self.working_set)
        return SyncResult(outcome=SyncOutcome.applied, seq=seq, box=box)

    def _on_failure(self, seq, box, error: QueryError) -> SyncResult:
        if seq != self._issued_seq:
            logger.debug("Ignoring failure of superseded request %d", seq)
            return SyncResult(outcome=SyncOutcome.discarded, seq=seq, box=box, error=error)

        logger.warning("Viewport fetch %d failed: %s", seq, error)
        self.last_error = error
        self.state = SyncState.error
        return SyncResult(outcome=SyncOutcome.failed, seq=seq, box=box, error=error)
