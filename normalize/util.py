"""
Normalization utility helpers.
Turn raw GitHub REST payloads and raw directory rows into normalize.models / correlate.models entities.
"""
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from normalize.models import (
    CommitRecord,
    PullRequestRecord,
    IssueRecord,
    ContributorSummary,
    STATE_OPEN,
    STATE_CLOSED,
    STATE_MERGED,
)
from correlate.models import Member


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (GitHub uses a trailing 'Z') into an aware datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _login_of(obj: Any) -> Optional[str]:
    if not isinstance(obj, dict):
        return None
    return obj.get('login') or None


def _state_of(raw: Dict[str, Any]) -> Optional[str]:
    if raw.get('merged_at'):
        return STATE_MERGED
    state = (raw.get('state') or '').lower()
    if state in (STATE_OPEN, STATE_CLOSED):
        return state
    return None


def normalize_commit(raw: Dict[str, Any]) -> CommitRecord:
    """
    Build a CommitRecord from a /commits item.
    The top-level ``author`` is the platform account (null when the email is not linked to one);
    ``commit.author`` carries the git name/email and date.
    """
    git = raw.get('commit') or {}
    git_author = git.get('author') or {}
    committer = git.get('committer') or {}
    stats = raw.get('stats') or {}
    timestamp = parse_timestamp(git_author.get('date')) or parse_timestamp(committer.get('date'))
    return CommitRecord(
        timestamp=timestamp,
        author_login=_login_of(raw.get('author')),
        author_display_name=git_author.get('name') or None,
        author_email=git_author.get('email') or None,
        additions=stats.get('additions') or 0,
        deletions=stats.get('deletions') or 0,
        identifier=raw.get('sha'),
    )


def normalize_pull_request(raw: Dict[str, Any]) -> PullRequestRecord:
    # list endpoints omit additions/deletions; detail payloads carry them
    return PullRequestRecord(
        timestamp=parse_timestamp(raw.get('created_at')),
        author_login=_login_of(raw.get('user')),
        state=_state_of(raw),
        additions=raw.get('additions') or 0,
        deletions=raw.get('deletions') or 0,
        identifier=str(raw.get('number')) if raw.get('number') is not None else None,
        closed_at=parse_timestamp(raw.get('closed_at')),
        merged_at=parse_timestamp(raw.get('merged_at')),
    )


def normalize_issue(raw: Dict[str, Any]) -> IssueRecord:
    return IssueRecord(
        timestamp=parse_timestamp(raw.get('created_at')),
        author_login=_login_of(raw.get('user')),
        state=_state_of(raw),
        identifier=str(raw.get('number')) if raw.get('number') is not None else None,
        closed_at=parse_timestamp(raw.get('closed_at')),
    )


def is_pull_request_item(raw: Dict[str, Any]) -> bool:
    """The issues endpoint also lists pull requests; those carry a ``pull_request`` key."""
    return bool(raw.get('pull_request'))


def normalize_contributor(raw: Dict[str, Any]) -> ContributorSummary:
    return ContributorSummary(login=raw.get('login') or '', contributions=raw.get('contributions') or 0)


def normalize_member(raw: Dict[str, Any]) -> Member:
    """Create a Member from a raw directory row.
    Accepts the snake_case keys used by the CLI teams file as well as camelCase keys (memberId, displayName, githubId).
    """
    member_id = raw.get('member_id') or raw.get('memberId') or raw.get('_id') or raw.get('id') or ''
    display_name = raw.get('display_name') or raw.get('displayName') or raw.get('name') or ''
    email = raw.get('email') or raw.get('emailAddress') or ''
    external_id = raw.get('external_id') or raw.get('externalId') or raw.get('githubId') or raw.get('login') or ''
    return Member(member_id=str(member_id), display_name=display_name, email=email, external_id=external_id)
