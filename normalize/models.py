"""
Normalized activity records pulled from a code-hosting API.
RawActivityRecord is a small tagged union: the subclass (and its ``kind``) says which kind of activity it is.
"""

from datetime import datetime
from typing import Optional, Dict, Any

COMMIT = 'commit'
PULL_REQUEST = 'pull_request'
ISSUE = 'issue'

STATE_OPEN = 'open'
STATE_CLOSED = 'closed'
STATE_MERGED = 'merged'
STATES = (STATE_OPEN, STATE_CLOSED, STATE_MERGED)


class RawActivityRecord:
    """
    One unit of activity with whatever author identity the API gave us.
    Any of the three author fields may be None. closed_at is set for closed issues and pull requests,
    merged_at for merged pull requests.
    """
    kind = ''

    def __init__(
        self,
        timestamp: datetime,
        author_login: Optional[str] = None,
        author_display_name: Optional[str] = None,
        author_email: Optional[str] = None,
        state: Optional[str] = None,
        additions: int = 0,
        deletions: int = 0,
        identifier: Optional[str] = None,
        closed_at: Optional[datetime] = None,
        merged_at: Optional[datetime] = None,
    ):
        if state is not None and state not in STATES:
            raise ValueError(f"unknown activity state: {state!r}")
        self.timestamp = timestamp
        self.author_login = author_login
        self.author_display_name = author_display_name
        self.author_email = author_email
        self.state = state
        self.additions = int(additions or 0)
        self.deletions = int(deletions or 0)
        self.identifier = identifier
        self.closed_at = closed_at
        self.merged_at = merged_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'identifier': self.identifier,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'author_login': self.author_login,
            'author_display_name': self.author_display_name,
            'author_email': self.author_email,
            'state': self.state,
            'additions': self.additions,
            'deletions': self.deletions,
            'closed_at': self.closed_at.isoformat() if self.closed_at else None,
            'merged_at': self.merged_at.isoformat() if self.merged_at else None,
        }

    def __repr__(self):
        who = self.author_login or self.author_display_name or self.author_email or '?'
        return f"<{type(self).__name__} {self.identifier or ''} by {who} at {self.timestamp}>"


class CommitRecord(RawActivityRecord):
    kind = COMMIT


class PullRequestRecord(RawActivityRecord):
    kind = PULL_REQUEST


class IssueRecord(RawActivityRecord):
    kind = ISSUE


class ContributorSummary:
    """Per-login contribution count as reported by the contributors endpoint."""

    def __init__(self, login: str, contributions: int):
        self.login = login
        self.contributions = int(contributions or 0)

    def __repr__(self):
        return f"<ContributorSummary {self.login}: {self.contributions}>"
