"""
Aggregation entry points: per-team and per-course activity statistics.
Wires the pipeline: parse repository url -> fetch activity -> correlate -> rollup, under the degradation policy.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from correlate.models import Member
from correlate.resolver import correlate, resolve_login
from degradation import DegradationPolicy
from ingest.errors import MalformedReference
from ingest.github import (
    GitHubActivitySource,
    parse_repository_url,
    DEFAULT_COMMIT_LIMIT,
    DEFAULT_PR_LIMIT,
    DEFAULT_ISSUE_LIMIT,
)
from normalize.models import ContributorSummary
from normalize.util import normalize_member
from scoring.models import TeamStats, DATA_SOURCE_LIVE
from scoring.rollup import rollup
from settings import load_settings
from storage.directory import DirectoryCache

log = logging.getLogger(__name__)

RosterEntry = Union[Member, str]


class ActivityAggregator:
    """
    Aggregates repository activity for teams.

    :param source: activity source with fetch_commits/fetch_pull_requests/fetch_issues/fetch_contributors.
    :param directory: DirectoryCache used to resolve roster entries given as member ids.
    :param policy: DegradationPolicy deciding between live and synthetic data.
    :param commit_stats: fetch per-commit additions/deletions (one extra request per commit).
    """

    def __init__(
        self,
        source,
        directory: Optional[DirectoryCache] = None,
        policy: Optional[DegradationPolicy] = None,
        commit_limit: int = DEFAULT_COMMIT_LIMIT,
        pr_limit: int = DEFAULT_PR_LIMIT,
        issue_limit: int = DEFAULT_ISSUE_LIMIT,
        max_workers: int = 8,
        commit_stats: bool = False,
    ):
        self.source = source
        self.directory = directory
        self.policy = policy or DegradationPolicy()
        self.commit_limit = commit_limit
        self.pr_limit = pr_limit
        self.issue_limit = issue_limit
        self.max_workers = max_workers
        self.commit_stats = commit_stats

    def resolve_roster(self, roster: Sequence[RosterEntry]) -> List[Member]:
        """Members pass through; bare ids go through the directory cache and unknown ids are dropped."""
        members: List[Member] = []
        pending_ids: List[str] = []
        for entry in roster or []:
            if isinstance(entry, Member):
                members.append(entry)
            elif isinstance(entry, dict):
                members.append(normalize_member(entry))
            else:
                pending_ids.append(str(entry))
        if pending_ids:
            if self.directory is None:
                log.warning("roster has %d member id(s) but no directory is configured; ignoring them", len(pending_ids))
            else:
                members.extend(self.directory.get_members(pending_ids))
        return members

    def _live_team_stats(self, team_id: str, repository_url: Optional[str], members: List[Member], now: datetime) -> TeamStats:
        if not repository_url:
            raise MalformedReference('', 'no repository configured')
        ref = parse_repository_url(repository_url)
        records = self.policy.fetch_all({
            'commits': lambda: self.source.fetch_commits(ref, self.commit_limit, with_stats=self.commit_stats),
            'pull_requests': lambda: self.source.fetch_pull_requests(ref, self.pr_limit),
            'issues': lambda: self.source.fetch_issues(ref, self.issue_limit),
        })
        log.info("team %s: %d record(s) from %s", team_id, len(records), ref.full_name)
        return rollup(correlate(records, members), members, team_id=team_id, data_source=DATA_SOURCE_LIVE, now=now)

    def aggregate_team(self, repository_url: Optional[str], roster: Sequence[RosterEntry], team_id: Optional[str] = None, now: Optional[datetime] = None) -> TeamStats:
        """Statistics for one team. Never raises for upstream trouble: check data_source instead."""
        team_id = team_id or repository_url or ''
        now = now or datetime.now(timezone.utc)
        members = self.resolve_roster(roster)
        return self.policy.run(team_id, members, lambda: self._live_team_stats(team_id, repository_url, members, now), now=now)

    def _aggregate_team_guarded(self, team: Dict[str, Any], now: datetime) -> TeamStats:
        team_id, repository_url, roster = _team_fields(team)
        try:
            return self.aggregate_team(repository_url, roster, team_id=team_id, now=now)
        except Exception:
            # one broken team must not take the course report down with it
            log.exception("team %s: unexpected error, falling back to synthetic data", team_id)
            members = [r if isinstance(r, Member) else normalize_member(r) for r in roster or [] if isinstance(r, (Member, dict))]
            return self.policy.synthesize(team_id, members, now)

    def aggregate_course(self, teams: Sequence[Dict[str, Any]], now: Optional[datetime] = None) -> List[TeamStats]:
        """
        Statistics for every team, computed concurrently.
        Each team falls back independently; results keep the input order.
        """
        now = now or datetime.now(timezone.utc)
        if not teams:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(teams))), thread_name_prefix='team') as pool:
            futures = [pool.submit(self._aggregate_team_guarded, team, now) for team in teams]
            return [f.result() for f in futures]

    def correlate_contributors(self, repository_url: str, roster: Sequence[RosterEntry]) -> List[Tuple[ContributorSummary, Optional[str]]]:
        """
        Pair each repository contributor with the member id its login resolves to.
        Raises MalformedReference or UpstreamFailure; there is no placeholder for this view.
        """
        ref = parse_repository_url(repository_url)
        members = self.resolve_roster(roster)
        contributors = self.policy.call(lambda: self.source.fetch_contributors(ref))
        return [(c, resolve_login(c.login, members)) for c in contributors]


def _team_fields(team: Any) -> Tuple[str, Optional[str], Sequence[RosterEntry]]:
    if isinstance(team, dict):
        team_id = team.get('team_id') or team.get('teamId') or team.get('id') or ''
        url = team.get('repository_url') or team.get('repositoryUrl')
        roster = team.get('roster') or team.get('members') or []
        return str(team_id), url, roster
    return getattr(team, 'team_id', ''), getattr(team, 'repository_url', None), getattr(team, 'roster', [])


def build_aggregator(settings: Dict[str, Any], directory: Any = None, seed: Optional[int] = None) -> ActivityAggregator:
    """Build an aggregator from a settings mapping (see settings.load_settings)."""
    source = GitHubActivitySource(token=settings.get('github_token'), base_url=settings.get('api_url'), timeout=settings.get('request_timeout'))
    directory_cache = None
    if directory is not None:
        directory_cache = DirectoryCache(directory, ttl_seconds=settings.get('directory_ttl'), sweep_interval=settings.get('directory_sweep'))
    policy = DegradationPolicy(max_retries=settings.get('max_retries'), backoff_base=settings.get('backoff_base'), team_timeout=settings.get('team_timeout'), seed=seed)
    return ActivityAggregator(
        source,
        directory=directory_cache,
        policy=policy,
        commit_limit=settings.get('commit_limit', DEFAULT_COMMIT_LIMIT),
        pr_limit=settings.get('pr_limit', DEFAULT_PR_LIMIT),
        issue_limit=settings.get('issue_limit', DEFAULT_ISSUE_LIMIT),
        max_workers=settings.get('max_workers', 8),
        commit_stats=bool(settings.get('commit_stats', False)),
    )


def aggregate_team(repository_url: Optional[str], roster: Sequence[RosterEntry], aggregator: Optional[ActivityAggregator] = None, team_id: Optional[str] = None) -> TeamStats:
    """Statistics for one team; without an aggregator one is built from load_settings()."""
    aggregator = aggregator or build_aggregator(load_settings())
    return aggregator.aggregate_team(repository_url, roster, team_id=team_id)


def aggregate_course(teams: Sequence[Dict[str, Any]], aggregator: Optional[ActivityAggregator] = None) -> List[TeamStats]:
    aggregator = aggregator or build_aggregator(load_settings())
    return aggregator.aggregate_course(teams)


__all__ = ['ActivityAggregator', 'build_aggregator', 'aggregate_team', 'aggregate_course']
