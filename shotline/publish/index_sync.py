"""Repository index synchronization.

The index is the one object every publish for a repository rewrites. The
object store has no compare-and-swap, so each publish runs a bounded
read -> merge -> write -> verify loop:

    READ_INDEX -> MERGE -> WRITE_INDEX -> VERIFY_INDEX -> DONE
                                                       -> RETRY (attempts left)
                                                       -> FAIL

A concurrent publisher that overwrites our write makes verification fail,
and the next attempt merges again on top of the newer index.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from tenacity import RetryCallState, Retrying, retry_if_result, stop_after_attempt, wait_incrementing

from shotline.manifest import utc_timestamp
from shotline.models.index import RepoIndex, RunSummary
from shotline.url_utils import RepoId

from .keys import JSON_CACHE_CONTROL, JSON_CONTENT_TYPE, index_key
from .store import ObjectStore, StoreError

logger = logging.getLogger(__name__)


class MergeState(str, Enum):
    READ_INDEX = "read_index"
    MERGE = "merge"
    WRITE_INDEX = "write_index"
    VERIFY_INDEX = "verify_index"
    DONE = "done"
    RETRY = "retry"
    FAIL = "fail"


@dataclass(frozen=True)
class AttemptResult:
    attempt: int
    state: MergeState
    failed_at: Optional[MergeState] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is MergeState.DONE


class CorruptIndexError(StoreError):
    """The stored index exists but cannot be parsed or validated."""


class IndexUpdateError(RuntimeError):
    """The run summary did not land in the repository index."""

    def __init__(self, message: str, attempts: list[AttemptResult]):
        super().__init__(message)
        self.attempts = attempts


def merge_index(
    existing: Optional[RepoIndex], summary: RunSummary, repo: str, updated_at: str,
) -> RepoIndex:
    """Insert ``summary`` into the index, replacing any entry with the same sha.

    Runs are ordered by capture time, newest first.
    """
    prior = [run for run in existing.runs if run.sha != summary.sha] if existing else []
    runs = sorted([summary, *prior], key=lambda run: run.captured_at, reverse=True)
    return RepoIndex(repo=repo, updated_at=updated_at, runs=tuple(runs))


def encode_index(index: RepoIndex) -> bytes:
    return json.dumps(index.to_json_dict(), indent=2).encode("utf-8")


def decode_index(raw: Optional[bytes]) -> Optional[RepoIndex]:
    """Parse an index document; a missing document yields None.

    A document that exists but does not validate raises CorruptIndexError
    so that it is never overwritten by a fresh index.
    """
    if raw is None:
        return None
    try:
        return RepoIndex.model_validate(json.loads(raw.decode("utf-8")))
    except ValueError as e:
        raise CorruptIndexError(f"Stored repo index is not a valid index document: {e}") from e


class IndexSynchronizer:
    """Merges run summaries into a repository index with bounded retries."""

    def __init__(
        self,
        store: ObjectStore,
        max_attempts: int = 3,
        backoff_seconds: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], str] = utc_timestamp,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self.clock = clock

    def sync(self, repo: RepoId, summary: RunSummary) -> list[AttemptResult]:
        """Run the merge loop; returns every attempt, or raises IndexUpdateError."""
        attempts: list[AttemptResult] = []
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff_seconds, increment=self.backoff_seconds),
            retry=retry_if_result(lambda result: not result.ok),
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=self._log_retry,
            sleep=self.sleep,
        )
        last = retrying(self._attempt, repo, summary, attempts)

        if not last.ok:
            attempts[-1] = AttemptResult(
                attempt=last.attempt, state=MergeState.FAIL,
                failed_at=last.failed_at, error=last.error,
            )
            raise IndexUpdateError(
                f"Failed to persist repo index for {repo} after {len(attempts)} attempts: "
                f"{last.error}",
                attempts,
            )

        logger.info(
            "Index for %s updated with %s (attempt %d/%d)",
            repo, summary.sha, last.attempt, self.max_attempts,
        )
        return attempts

    def _read(self, repo: RepoId) -> Optional[RepoIndex]:
        return decode_index(self.store.get(index_key(repo)))

    def _attempt(
        self, repo: RepoId, summary: RunSummary, attempts: list[AttemptResult],
    ) -> AttemptResult:
        number = len(attempts) + 1
        state = MergeState.READ_INDEX
        try:
            current = self._read(repo)
            logger.debug(
                "Attempt %d: read index with %d runs", number, len(current.runs) if current else 0,
            )

            state = MergeState.MERGE
            candidate = merge_index(current, summary, repo.full_name, self.clock())

            state = MergeState.WRITE_INDEX
            self.store.put(
                index_key(repo), encode_index(candidate), JSON_CONTENT_TYPE, JSON_CACHE_CONTROL,
            )

            state = MergeState.VERIFY_INDEX
            verified = self._read(repo)
            if verified is not None and verified.has_run(summary.sha):
                result = AttemptResult(attempt=number, state=MergeState.DONE)
            else:
                result = AttemptResult(
                    attempt=number, state=MergeState.RETRY, failed_at=state,
                    error=f"run {summary.sha} missing from index after write",
                )
        except StoreError as e:
            result = AttemptResult(
                attempt=number, state=MergeState.RETRY, failed_at=state, error=str(e),
            )

        attempts.append(result)
        return result

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        result: AttemptResult = retry_state.outcome.result()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Index update attempt %d failed at %s (%s); retrying in %.2fs",
            result.attempt, result.failed_at.value if result.failed_at else "?",
            result.error, delay,
        )
