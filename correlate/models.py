"""
Data models for team members and correlated activity.
"""
from typing import Optional, Dict, Any


class Member:
    """
    A registered team member.
    external_id is the hosting-platform login used for correlation and may be empty.
    """

    def __init__(self, member_id: str, display_name: str = '', email: str = '', external_id: str = ''):
        self.member_id = member_id
        self.display_name = display_name or ''
        self.email = email or ''
        self.external_id = external_id or ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'member_id': self.member_id,
            'display_name': self.display_name,
            'email': self.email,
            'external_id': self.external_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Member':
        return cls(
            member_id=data.get('member_id', ''),
            display_name=data.get('display_name', ''),
            email=data.get('email', ''),
            external_id=data.get('external_id', ''),
        )

    def __eq__(self, other):
        return isinstance(other, Member) and self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(self.member_id)

    def __repr__(self):
        return f"<Member {self.member_id} ({self.external_id or self.display_name})>"


class CorrelatedActivity:
    """A raw activity record plus the member it resolved to (None when unattributed)."""

    def __init__(self, record, member_id: Optional[str] = None):
        self.record = record
        self.member_id = member_id

    @property
    def kind(self) -> str:
        return self.record.kind

    @property
    def attributed(self) -> bool:
        return self.member_id is not None

    def __repr__(self):
        return f"<CorrelatedActivity {self.record!r} -> {self.member_id}>"
