"""
Degradation policy: decide whether a team gets live or placeholder statistics.

A team is live only when every activity fetch succeeds. Any ActivityError (malformed or missing
repository URL, upstream failure, partial data) switches that team to synthetic data, which is
built by feeding generated records through the same rollup as live data so both have the same shape.
"""
import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence
from correlate.models import Member, CorrelatedActivity
from ingest.errors import ActivityError, UpstreamFailure, PartialData, TIMEOUT
from normalize.models import (
    RawActivityRecord,
    CommitRecord,
    PullRequestRecord,
    IssueRecord,
    STATE_OPEN,
    STATE_CLOSED,
    STATE_MERGED,
)
from scoring.models import TeamStats, DATA_SOURCE_SYNTHETIC
from scoring.rollup import rollup
from storage.retry import call_with_retries

log = logging.getLogger(__name__)

# plausible bounds for generated activity, per member
SYNTHETIC_MAX_COMMITS = 40
SYNTHETIC_MAX_PRS = 10
SYNTHETIC_MAX_ISSUES = 10
SYNTHETIC_MAX_UNATTRIBUTED = 5
SYNTHETIC_MAX_ADDITIONS = 200
SYNTHETIC_MAX_DELETIONS = 100
SYNTHETIC_WINDOW_DAYS = 30
SYNTHETIC_MAX_OPEN_DAYS = 10


def _synthetic_time(rng: random.Random, now: datetime) -> datetime:
    return now - timedelta(seconds=rng.randint(0, SYNTHETIC_WINDOW_DAYS * 24 * 3600))


def _synthetic_commit(rng: random.Random, now: datetime, login: Optional[str]) -> CommitRecord:
    return CommitRecord(
        timestamp=_synthetic_time(rng, now),
        author_login=login,
        additions=rng.randint(0, SYNTHETIC_MAX_ADDITIONS),
        deletions=rng.randint(0, SYNTHETIC_MAX_DELETIONS),
    )


def _synthetic_close(rng: random.Random, opened: datetime, now: datetime) -> datetime:
    return min(now, opened + timedelta(seconds=rng.randint(3600, SYNTHETIC_MAX_OPEN_DAYS * 24 * 3600)))


def synthetic_activity(roster: Sequence[Member], rng: random.Random, now: datetime) -> List[CorrelatedActivity]:
    """Generate attributed activity for each roster member plus a few unattributed commits."""
    activity: List[CorrelatedActivity] = []
    for member in roster:
        login = member.external_id or None
        for _ in range(rng.randint(0, SYNTHETIC_MAX_COMMITS)):
            activity.append(CorrelatedActivity(_synthetic_commit(rng, now, login), member.member_id))
        for _ in range(rng.randint(0, SYNTHETIC_MAX_PRS)):
            state = rng.choice((STATE_OPEN, STATE_MERGED, STATE_CLOSED))
            opened = _synthetic_time(rng, now)
            closed = _synthetic_close(rng, opened, now) if state != STATE_OPEN else None
            record = PullRequestRecord(
                timestamp=opened,
                author_login=login,
                state=state,
                closed_at=closed,
                merged_at=closed if state == STATE_MERGED else None,
            )
            activity.append(CorrelatedActivity(record, member.member_id))
        for _ in range(rng.randint(0, SYNTHETIC_MAX_ISSUES)):
            state = rng.choice((STATE_OPEN, STATE_CLOSED))
            opened = _synthetic_time(rng, now)
            closed = _synthetic_close(rng, opened, now) if state == STATE_CLOSED else None
            record = IssueRecord(timestamp=opened, author_login=login, state=state, closed_at=closed)
            activity.append(CorrelatedActivity(record, member.member_id))
    for _ in range(rng.randint(0, SYNTHETIC_MAX_UNATTRIBUTED)):
        activity.append(CorrelatedActivity(_synthetic_commit(rng, now, None), None))
    return activity


class DegradationPolicy:
    def __init__(
        self,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        team_timeout: Optional[float] = None,
        seed: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        :param max_retries: attempts per adapter call (1 disables retrying); None uses storage.retry defaults.
        :param backoff_base: first retry delay in seconds.
        :param team_timeout: optional bound on the whole fetch join for one team.
        :param seed: seed for the synthetic generator. Each team draws from its own generator
            seeded with (seed, team_id), so placeholders do not depend on thread scheduling.
        """
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.team_timeout = team_timeout
        self.seed = seed
        self.rng = random.Random(seed)
        self._sleep = sleep

    def call(self, fn: Callable):
        return call_with_retries(fn, max_retries=self.max_retries, backoff_base=self.backoff_base, sleep=self._sleep)

    def fetch_all(self, fetches: Dict[str, Callable[[], List[RawActivityRecord]]]) -> List[RawActivityRecord]:
        """
        Run the named fetches concurrently and join them.
        Returns all records in fetch order, or raises when any fetch failed.
        """
        results: Dict[str, List[RawActivityRecord]] = {}
        failed: Dict[str, UpstreamFailure] = {}
        pool = ThreadPoolExecutor(max_workers=max(1, len(fetches)), thread_name_prefix='fetch')
        try:
            futures = {name: pool.submit(self.call, fn) for name, fn in fetches.items()}
            deadline = time.monotonic() + self.team_timeout if self.team_timeout else None
            for name, future in futures.items():
                remaining = max(0.0, deadline - time.monotonic()) if deadline else None
                try:
                    results[name] = future.result(timeout=remaining)
                except UpstreamFailure as exc:
                    failed[name] = exc
                except FuturesTimeout:
                    failed[name] = UpstreamFailure(TIMEOUT, f"{name} did not finish within {self.team_timeout:.1f}s")
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if failed and not results:
            raise next(iter(failed.values()))
        if failed:
            raise PartialData(failed)
        records: List[RawActivityRecord] = []
        for name in fetches:
            records.extend(results[name])
        return records

    def _team_rng(self, team_id: str) -> random.Random:
        if self.seed is None:
            return self.rng
        return random.Random(f"{self.seed}:{team_id}")

    def synthesize(self, team_id: str, roster: Sequence[Member], now: Optional[datetime] = None) -> TeamStats:
        now = now or datetime.now(timezone.utc)
        return rollup(synthetic_activity(roster, self._team_rng(team_id), now), roster, team_id=team_id, data_source=DATA_SOURCE_SYNTHETIC, now=now)

    def run(self, team_id: str, roster: Sequence[Member], pipeline: Callable[[], TeamStats], now: Optional[datetime] = None) -> TeamStats:
        """Return the pipeline's live stats, or synthetic stats when it raises an ActivityError."""
        try:
            return pipeline()
        except ActivityError as exc:
            log.warning("team %s: falling back to synthetic data (%s)", team_id, exc)
            return self.synthesize(team_id, roster, now)
