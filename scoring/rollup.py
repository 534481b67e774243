"""
Rollup calculator: fold correlated activity into per-member and per-team counters.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from correlate.models import Member, CorrelatedActivity
from normalize.models import RawActivityRecord, COMMIT, PULL_REQUEST, ISSUE, STATE_OPEN, STATE_CLOSED, STATE_MERGED
from .models import MemberStats, TeamStats, DATA_SOURCE_LIVE

# length of the recent-commit series, in days
ACTIVITY_WINDOW_DAYS = 14
# trend windows
TREND_MONTHS = 6
TREND_WEEKS = 6

_COUNTER_BY_KIND = {
    COMMIT: 'commit_count',
    PULL_REQUEST: 'pr_count',
    ISSUE: 'issue_count',
}


def _later(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


def _member_rows(roster: Sequence[Member]) -> Dict[str, MemberStats]:
    # one zeroed row per roster member, roster order, first occurrence of an id wins
    rows: Dict[str, MemberStats] = {}
    for member in roster:
        if member.member_id not in rows:
            rows[member.member_id] = MemberStats(member.member_id)
    return rows


def _bump_member(row: MemberStats, activity: CorrelatedActivity):
    counter = _COUNTER_BY_KIND[activity.kind]
    setattr(row, counter, getattr(row, counter) + 1)
    row.additions += activity.record.additions
    row.deletions += activity.record.deletions
    row.last_active = _later(row.last_active, activity.record.timestamp)


def _bump_breakdowns(activity: CorrelatedActivity, issue_breakdown: Dict[str, int], pr_breakdown: Dict[str, int]):
    state = activity.record.state
    if activity.kind == ISSUE and state in (STATE_OPEN, STATE_CLOSED):
        issue_breakdown[state] += 1
    elif activity.kind == PULL_REQUEST and state in (STATE_OPEN, STATE_MERGED, STATE_CLOSED):
        pr_breakdown[state] += 1


def daily_commit_series(timestamps: Iterable[Optional[datetime]], now: datetime, days: int = ACTIVITY_WINDOW_DAYS) -> List[Dict[str, object]]:
    """Commit counts per UTC day for the ``days`` days ending at ``now``, oldest first, zero-filled."""
    end = now.astimezone(timezone.utc).date()
    start = end - timedelta(days=days - 1)
    counts = {start + timedelta(days=i): 0 for i in range(days)}
    for ts in timestamps:
        if ts is None:
            continue
        day = ts.astimezone(timezone.utc).date()
        if day in counts:
            counts[day] += 1
    return [{'date': d.isoformat(), 'count': c} for d, c in counts.items()]


def _month_key(ts: datetime) -> str:
    return f"{ts.year:04d}-{ts.month:02d}"


def _months_back(now: datetime, months: int) -> List[str]:
    year, month = now.year, now.month
    keys = []
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def monthly_activity_series(records: Iterable[RawActivityRecord], now: datetime, months: int = TREND_MONTHS) -> List[Dict[str, object]]:
    """
    Per calendar month (UTC) for the ``months`` months up to and including the month of ``now``, oldest first:
    commits authored, issues opened (by created time) and issues closed (by closed_at).
    """
    now = now.astimezone(timezone.utc)
    series = {key: {'month': key, 'commits': 0, 'issues_opened': 0, 'issues_closed': 0} for key in _months_back(now, months)}

    def bump(ts: Optional[datetime], field: str):
        if ts is None:
            return
        ts = ts.astimezone(timezone.utc)
        if ts > now:
            return
        slot = series.get(_month_key(ts))
        if slot is not None:
            slot[field] += 1

    for record in records:
        if record.kind == COMMIT:
            bump(record.timestamp, 'commits')
        elif record.kind == ISSUE:
            bump(record.timestamp, 'issues_opened')
            bump(record.closed_at, 'issues_closed')
    return list(series.values())


def weekly_activity_series(records: Iterable[RawActivityRecord], now: datetime, weeks: int = TREND_WEEKS) -> List[Dict[str, int]]:
    """
    Activity per trailing 7-day window ending at ``now``, oldest first.
    ``weeks_ago`` 0 covers (now - 7 days, now]; records are placed by their creation time.
    """
    counts = {i: {'weeks_ago': i, 'commits': 0, 'pull_requests': 0, 'issues': 0} for i in range(weeks)}
    field = {COMMIT: 'commits', PULL_REQUEST: 'pull_requests', ISSUE: 'issues'}
    week = timedelta(days=7)
    for record in records:
        if record.timestamp is None or record.kind not in field:
            continue
        age = now - record.timestamp
        if age < timedelta(0):
            continue
        index = int(age // week)
        if index in counts:
            counts[index][field[record.kind]] += 1
    return [counts[i] for i in range(weeks - 1, -1, -1)]


def rollup(
    correlated: Iterable[CorrelatedActivity],
    roster: Sequence[Member],
    team_id: str = '',
    data_source: str = DATA_SOURCE_LIVE,
    now: Optional[datetime] = None,
) -> TeamStats:
    """
    Compute TeamStats from correlated activity.

    Every roster member gets a row even with no activity. Team totals are counted
    from the records themselves, so unattributed activity still shows up in them.
    """
    now = now or datetime.now(timezone.utc)
    rows = _member_rows(roster)
    totals = {COMMIT: 0, PULL_REQUEST: 0, ISSUE: 0}
    additions = deletions = 0
    last_active: Optional[datetime] = None
    issue_breakdown = {STATE_OPEN: 0, STATE_CLOSED: 0}
    pr_breakdown = {STATE_OPEN: 0, STATE_MERGED: 0, STATE_CLOSED: 0}
    commit_times: List[Optional[datetime]] = []
    records: List[RawActivityRecord] = []

    for activity in correlated:
        if activity.kind not in totals:
            raise ValueError(f"unknown activity kind: {activity.kind!r}")
        totals[activity.kind] += 1
        additions += activity.record.additions
        deletions += activity.record.deletions
        last_active = _later(last_active, activity.record.timestamp)
        _bump_breakdowns(activity, issue_breakdown, pr_breakdown)
        records.append(activity.record)
        if activity.kind == COMMIT:
            commit_times.append(activity.record.timestamp)
        row = rows.get(activity.member_id) if activity.member_id is not None else None
        if row is not None:
            _bump_member(row, activity)

    return TeamStats(
        team_id=team_id,
        member_stats=list(rows.values()),
        total_commits=totals[COMMIT],
        total_prs=totals[PULL_REQUEST],
        total_issues=totals[ISSUE],
        data_source=data_source,
        additions=additions,
        deletions=deletions,
        last_active=last_active,
        issue_breakdown=issue_breakdown,
        pr_breakdown=pr_breakdown,
        daily_commits=daily_commit_series(commit_times, now),
        monthly_activity=monthly_activity_series(records, now),
        weekly_activity=weekly_activity_series(records, now),
    )
