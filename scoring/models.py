"""
Rollup results: per-member and per-team statistics.
"""
from datetime import datetime
from typing import List, Dict, Any, Optional

DATA_SOURCE_LIVE = 'live'
DATA_SOURCE_SYNTHETIC = 'synthetic'
DATA_SOURCES = (DATA_SOURCE_LIVE, DATA_SOURCE_SYNTHETIC)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


class MemberStats:
    """
    Activity counters for a single roster member.
    """

    def __init__(self, member_id: str, commit_count: int = 0, pr_count: int = 0, issue_count: int = 0, last_active: Optional[datetime] = None, additions: int = 0, deletions: int = 0):
        self.member_id = member_id
        self.commit_count = commit_count
        self.pr_count = pr_count
        self.issue_count = issue_count
        self.last_active = last_active
        self.additions = additions
        self.deletions = deletions

    def to_dict(self) -> Dict[str, Any]:
        return {
            'member_id': self.member_id,
            'commit_count': self.commit_count,
            'pr_count': self.pr_count,
            'issue_count': self.issue_count,
            'last_active': _iso(self.last_active),
            'additions': self.additions,
            'deletions': self.deletions,
        }

    def __repr__(self):
        return f"<MemberStats {self.member_id}: commits={self.commit_count} prs={self.pr_count} issues={self.issue_count}>"


class TeamStats:
    """
    Aggregated statistics for one team.

    Totals count every record, attributed or not, so they can exceed the sum of the member rows.
    data_source is always set: 'live' for real numbers, 'synthetic' for placeholder data.
    """

    def __init__(
        self,
        team_id: str,
        member_stats: List[MemberStats],
        total_commits: int,
        total_prs: int,
        total_issues: int,
        data_source: str,
        additions: int = 0,
        deletions: int = 0,
        last_active: Optional[datetime] = None,
        issue_breakdown: Optional[Dict[str, int]] = None,
        pr_breakdown: Optional[Dict[str, int]] = None,
        daily_commits: Optional[List[Dict[str, Any]]] = None,
        monthly_activity: Optional[List[Dict[str, Any]]] = None,
        weekly_activity: Optional[List[Dict[str, Any]]] = None,
    ):
        if data_source not in DATA_SOURCES:
            raise ValueError(f"unknown data source: {data_source!r}")
        self.team_id = team_id
        self.member_stats = member_stats
        self.total_commits = total_commits
        self.total_prs = total_prs
        self.total_issues = total_issues
        self.data_source = data_source
        self.additions = additions
        self.deletions = deletions
        self.last_active = last_active
        self.issue_breakdown = issue_breakdown if issue_breakdown is not None else {'open': 0, 'closed': 0}
        self.pr_breakdown = pr_breakdown if pr_breakdown is not None else {'open': 0, 'merged': 0, 'closed': 0}
        self.daily_commits = daily_commits or []
        self.monthly_activity = monthly_activity or []
        self.weekly_activity = weekly_activity or []

    @property
    def is_synthetic(self) -> bool:
        return self.data_source == DATA_SOURCE_SYNTHETIC

    def member(self, member_id: str) -> Optional[MemberStats]:
        for ms in self.member_stats:
            if ms.member_id == member_id:
                return ms
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'team_id': self.team_id,
            'data_source': self.data_source,
            'total_commits': self.total_commits,
            'total_prs': self.total_prs,
            'total_issues': self.total_issues,
            'additions': self.additions,
            'deletions': self.deletions,
            'last_active': _iso(self.last_active),
            'issue_breakdown': dict(self.issue_breakdown),
            'pr_breakdown': dict(self.pr_breakdown),
            'daily_commits': [dict(d) for d in self.daily_commits],
            'monthly_activity': [dict(m) for m in self.monthly_activity],
            'weekly_activity': [dict(w) for w in self.weekly_activity],
            'member_stats': [ms.to_dict() for ms in self.member_stats],
        }

    def __repr__(self):
        return f"<TeamStats {self.team_id} [{self.data_source}] commits={self.total_commits} prs={self.total_prs} issues={self.total_issues}>"
