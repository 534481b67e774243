"""
Identity resolution: map a raw record's author fields onto a roster member.

Rules are tried in order and the first rule that matches any member wins:
- platform login vs member external id (case-sensitive)
- author display name vs member display name (exact)
- author email vs member email (case-insensitive)
Within a rule, roster order breaks ties. Unmatched records resolve to None and are kept.
"""
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from correlate.models import Member, CorrelatedActivity


def _normalize_email(value: Optional[str]) -> str:
    return (value or '').strip().lower()


def match_login(record, member: Member) -> bool:
    return bool(record.author_login) and record.author_login == member.external_id


def match_display_name(record, member: Member) -> bool:
    return bool(record.author_display_name) and record.author_display_name == member.display_name


def match_email(record, member: Member) -> bool:
    email = _normalize_email(record.author_email)
    return bool(email) and email == _normalize_email(member.email)


Rule = Callable[[object, Member], bool]

RESOLUTION_RULES: Tuple[Tuple[str, Rule], ...] = (
    ('login', match_login),
    ('display_name', match_display_name),
    ('email', match_email),
)


def resolve_with_rule(record, roster: Sequence[Member], rules: Iterable[Tuple[str, Rule]] = RESOLUTION_RULES) -> Tuple[Optional[str], Optional[str]]:
    """Return (member_id, rule_name) for the first matching rule, or (None, None)."""
    for name, rule in rules:
        for member in roster:
            if rule(record, member):
                return member.member_id, name
    return None, None


def resolve(record, roster: Sequence[Member]) -> Optional[str]:
    """Return the member id the record belongs to, or None when no rule matches."""
    member_id, _ = resolve_with_rule(record, roster)
    return member_id


def correlate(records: Iterable, roster: Sequence[Member]) -> List[CorrelatedActivity]:
    """Resolve every record against the roster; unattributed records are kept with member_id None."""
    roster = list(roster)
    return [CorrelatedActivity(r, resolve(r, roster)) for r in records]


def resolve_login(login: Optional[str], roster: Sequence[Member]) -> Optional[str]:
    """Resolve a bare platform login (e.g. from a contributors listing) with the login rule only."""
    if not login:
        return None
    for member in roster:
        if member.external_id == login:
            return member.member_id
    return None
