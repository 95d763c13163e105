"""Sequential cursor walk over one target's ``/stores`` listing."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from deep_pagination.config import Target
from deep_pagination.fetcher import PageResult
from deep_pagination.recorder import LatencyRecorder

PAGE_SIZE = 50
MAX_PAGES = 2000  # 100,000 items deep at PAGE_SIZE

log = logging.getLogger(__name__)

Fetch = Callable[[Target, int, Optional[str]], PageResult]


class WalkOutcome(str, Enum):
    EXHAUSTED = "exhausted"
    PAGE_LIMIT_REACHED = "page_limit_reached"
    REQUEST_FAILED = "request_failed"
    DEADLINE_REACHED = "deadline_reached"


@dataclass(frozen=True)
class WalkResult:
    target_name: str
    outcome: WalkOutcome
    pages_fetched: int
    samples_recorded: int
    failure: Optional[PageResult] = None

    @property
    def last_page_index(self) -> Optional[int]:
        if self.samples_recorded == 0:
            return None
        return self.samples_recorded - 1


def run_walk(
    fetch: Fetch,
    target: Target,
    recorder: LatencyRecorder,
    page_size: int = PAGE_SIZE,
    page_limit: int = MAX_PAGES,
    should_continue: Optional[Callable[[], bool]] = None,
) -> WalkResult:
    """
    Walk ``target``'s listing from the empty cursor until exhaustion, failure
    or ``page_limit`` pages.

    Every successful page is recorded before its token is inspected, so an
    exhausted walk of L pages records samples 0..L-1. A failed page ends the
    walk without a sample and without retry. ``should_continue`` is checked
    before each page after the first; returning False ends the walk with
    DEADLINE_REACHED.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    cursor = ""
    page_index = 0
    while page_index < page_limit:
        if page_index > 0 and should_continue is not None and not should_continue():
            return WalkResult(target.name, WalkOutcome.DEADLINE_REACHED, page_index, page_index)

        result = fetch(target, page_size, cursor)
        if not result.status_ok:
            return WalkResult(target.name, WalkOutcome.REQUEST_FAILED, page_index + 1, page_index, failure=result)

        recorder.record(target.name, page_index, result.elapsed)
        if not result.next_cursor:
            return WalkResult(target.name, WalkOutcome.EXHAUSTED, page_index + 1, page_index + 1)

        cursor = result.next_cursor
        page_index += 1

    return WalkResult(target.name, WalkOutcome.PAGE_LIMIT_REACHED, page_index, page_index)


def log_walk_result(result: WalkResult, logger=None):
    logger = logger or log
    name = result.target_name
    if result.outcome is WalkOutcome.EXHAUSTED:
        logger.info("[%s] No more pages at iteration %d", name, result.last_page_index)
    elif result.outcome is WalkOutcome.PAGE_LIMIT_REACHED:
        logger.info("[%s] Page limit reached after %d pages, continuation token still present", name, result.pages_fetched)
    elif result.outcome is WalkOutcome.DEADLINE_REACHED:
        logger.warning("[%s] Max duration reached, walk stopped after %d pages", name, result.pages_fetched)
    else:
        failure = result.failure
        logger.error(
            "[%s] Error at page %d: %s %s (%s)",
            name,
            result.pages_fetched - 1,
            failure.http_status,
            failure.body_preview,
            failure.error,
        )
