"""
Batched keyword analysis.

Keywords are scored in fixed-size batches: every call in a batch runs
concurrently, the batch is awaited as a whole, and a pause separates
consecutive batches to bound the outbound request rate.  A keyword whose
scoring call fails yields a degraded KeywordResult instead of aborting the
run, so the output always has one entry per input keyword, in input order.
"""

import logging
import random
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone

from django.conf import settings

from .schemas import KeywordScore, Level, Recommendation, validate_payload

logger = logging.getLogger(__name__)

KEYWORD_DELIMITER = ","

PacingPolicy = Callable[[int], float]


@dataclass(frozen=True)
class KeywordResult:
    """Outcome of scoring one keyword.  Never mutated once built."""

    keyword: str
    traffic_score: int
    difficulty_score: int
    competition_level: str
    traffic_level: str
    recommendation: str
    error: str | None = None

    @classmethod
    def from_score(cls, keyword: str, score) -> "KeywordResult":
        """Build from a scorer response, keeping the keyword that was submitted."""
        return cls(
            keyword=keyword,
            traffic_score=score.traffic_score,
            difficulty_score=score.difficulty_score,
            competition_level=score.competition_level.value,
            traffic_level=score.traffic_level.value,
            recommendation=score.recommendation.value,
        )

    @classmethod
    def failed(cls, keyword: str, message: str) -> "KeywordResult":
        return cls(
            keyword=keyword,
            traffic_score=0,
            difficulty_score=0,
            competition_level=Level.UNKNOWN.value,
            traffic_level=Level.UNKNOWN.value,
            recommendation=Recommendation.ANALYSIS_FAILED.value,
            error=message,
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict:
        data = {
            "keyword": self.keyword,
            "trafficScore": self.traffic_score,
            "difficultyScore": self.difficulty_score,
            "competitionLevel": self.competition_level,
            "trafficLevel": self.traffic_level,
            "recommendation": self.recommendation,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class AnalysisRun:
    """One invocation of the batch workflow.  Lives only for that invocation."""

    keywords: list[str]
    width: int
    platform: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None
    results: list[KeywordResult] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)


# --------------------------------------------------------------------------- #
# Normalizer / ranker / sampler
# --------------------------------------------------------------------------- #


def normalize_keywords(raw: str) -> list[str]:
    """
    Split a comma-separated keyword string.

    Pieces are stripped and empty ones dropped; order and duplicates are
    kept.  Returns an empty list when nothing usable remains.
    """
    return [piece.strip() for piece in (raw or "").split(KEYWORD_DELIMITER) if piece.strip()]


def rank_results(results: Sequence[KeywordResult]) -> list[KeywordResult]:
    """Traffic descending, then difficulty ascending; ties keep input order."""
    return sorted(results, key=lambda r: (-r.traffic_score, r.difficulty_score))


def sample_keywords(
    pool: Sequence[str], size: int | None = None, rng: random.Random | None = None
) -> list[str]:
    """Uniform random subset without replacement (whole pool if it is smaller)."""
    size = settings.APPSCOUT_SAMPLE_SIZE if size is None else size
    if len(pool) <= size:
        return list(pool)
    return (rng or random).sample(list(pool), size)


def chunk(items: Sequence, width: int) -> list[list]:
    return [list(items[i : i + width]) for i in range(0, len(items), width)]


# --------------------------------------------------------------------------- #
# Pacing
# --------------------------------------------------------------------------- #


def constant_pacing(seconds: float) -> PacingPolicy:
    """Same pause after every batch."""
    return lambda batch_index: seconds


def no_pacing(batch_index: int) -> float:
    return 0.0


# --------------------------------------------------------------------------- #
# Orchestrator
# --------------------------------------------------------------------------- #


class BatchOrchestrator:
    """
    Scores keywords against a scorer in ordered, fixed-width batches.

    Args:
        scorer: object with score(keyword) -> KeywordScore, bound to one platform.
        width: batch size / max concurrent calls.  Must already be in
            1..APPSCOUT_MAX_CONCURRENCY.
        pacing: batch index -> seconds to wait before the next batch.
        sleep: called with the pause duration (time.sleep by default).
        call_timeout: seconds a single call may take, measured from the
            start of its batch; an expired call is reported as failed.
    """

    def __init__(
        self,
        scorer,
        width: int | None = None,
        pacing: PacingPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        call_timeout: float | None = None,
    ):
        width = settings.APPSCOUT_CONCURRENCY if width is None else width
        if not 1 <= width <= settings.APPSCOUT_MAX_CONCURRENCY:
            raise ValueError(
                f"width must be between 1 and {settings.APPSCOUT_MAX_CONCURRENCY}, got {width}"
            )
        self.scorer = scorer
        self.width = width
        self.pacing = pacing or constant_pacing(settings.APPSCOUT_BATCH_DELAY)
        self.sleep = sleep
        self.call_timeout = call_timeout

    def run(self, keywords: Sequence[str]) -> list[KeywordResult]:
        batches = chunk(keywords, self.width)
        results: list[KeywordResult] = []

        for index, batch in enumerate(batches):
            logger.info(
                "Processing batch %d/%d (%d keywords)", index + 1, len(batches), len(batch)
            )
            results.extend(self._run_batch(batch))

            if index < len(batches) - 1:
                delay = self.pacing(index)
                if delay > 0:
                    logger.info("Waiting %.1fs before next batch...", delay)
                    self.sleep(delay)

        return results

    def _run_batch(self, batch: list[str]) -> list[KeywordResult]:
        executor = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="appscout-score")
        try:
            futures = [executor.submit(self.scorer.score, keyword) for keyword in batch]
            deadline = None if self.call_timeout is None else time.monotonic() + self.call_timeout
            slots: list[KeywordResult] = []
            for keyword, future in zip(batch, futures):
                slots.append(self._collect(keyword, future, deadline))
            return slots
        finally:
            # A hung call must not stall the run once its slot is filled.
            executor.shutdown(wait=self.call_timeout is None, cancel_futures=True)

    def _collect(self, keyword: str, future, deadline: float | None) -> KeywordResult:
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            score = future.result(timeout=timeout)
            if not isinstance(score, KeywordScore):
                score = validate_payload(KeywordScore, score, source="keyword scorer")
            result = KeywordResult.from_score(keyword, score)
        except FutureTimeoutError:
            message = f"Timed out after {self.call_timeout}s"
            logger.warning("Failed to analyze keyword \"%s\": %s", keyword, message)
            return KeywordResult.failed(keyword, message)
        except Exception as e:
            logger.warning("Failed to analyze keyword \"%s\": %s", keyword, e)
            return KeywordResult.failed(keyword, str(e))
        logger.info("Analyzed \"%s\"", keyword)
        return result


def analyze_keywords(
    keywords: Sequence[str],
    scorer,
    width: int | None = None,
    pacing: PacingPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    call_timeout: float | None = None,
) -> AnalysisRun:
    """Run the orchestrator over keywords and return the ranked AnalysisRun."""
    orchestrator = BatchOrchestrator(
        scorer, width=width, pacing=pacing, sleep=sleep, call_timeout=call_timeout
    )
    run = AnalysisRun(
        keywords=list(keywords),
        width=orchestrator.width,
        platform=getattr(getattr(scorer, "platform", None), "value", ""),
        started_at=datetime.now(timezone.utc),
    )
    run.results = rank_results(orchestrator.run(run.keywords))
    run.finished_at = datetime.now(timezone.utc)
    return run
