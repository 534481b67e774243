"""
Member directory lookups with a time-bounded cache in front.

The directory itself is an external store; anything with a ``find_member(member_id)`` method
returning a Member, a raw dict row or None will do. The cache only saves repeated lookups:
an expired entry is never served, and concurrent misses for the same id may both hit the directory.
"""
import logging
import os
from typing import Any, Dict, Iterable, List, Optional
from correlate.models import Member
from normalize.util import normalize_member
from .cache import Cache

log = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = float(os.getenv("TEAMPULSE_DIRECTORY_TTL", "3600"))
DEFAULT_SWEEP_SECONDS = float(os.getenv("TEAMPULSE_DIRECTORY_SWEEP", "120"))


class InMemoryDirectory:
    """Directory backed by a dict of member id -> Member, e.g. loaded from a teams file."""

    def __init__(self, members: Iterable[Member] = ()):
        self._members: Dict[str, Member] = {m.member_id: m for m in members}
        self.lookups = 0

    def add(self, member: Member):
        self._members[member.member_id] = member

    def find_member(self, member_id: str) -> Optional[Member]:
        self.lookups += 1
        return self._members.get(member_id)


class DirectoryCache:
    def __init__(self, directory: Any, cache: Optional[Cache] = None, ttl_seconds: Optional[float] = None, sweep_interval: Optional[float] = None):
        self.directory = directory
        if cache is None:
            cache = Cache(
                ttl_seconds=ttl_seconds if ttl_seconds is not None else DEFAULT_TTL_SECONDS,
                sweep_interval=sweep_interval if sweep_interval is not None else DEFAULT_SWEEP_SECONDS,
            )
        self.cache = cache

    @staticmethod
    def _key(member_id: str) -> str:
        return f"member:{member_id}"

    def get_member(self, member_id: str) -> Optional[Member]:
        if not member_id:
            return None
        cached = self.cache.get(self._key(member_id))
        if cached is not None:
            return Member.from_dict(cached)
        found = self.directory.find_member(member_id)
        if found is None:
            return None
        member = found if isinstance(found, Member) else normalize_member(found)
        self.cache.set(self._key(member_id), member.to_dict())
        return member

    def get_members(self, member_ids: Iterable[str]) -> List[Member]:
        """Look up each id in order; unknown ids are dropped."""
        members = []
        for member_id in member_ids:
            member = self.get_member(member_id)
            if member is None:
                log.debug("member %s not found in directory", member_id)
                continue
            members.append(member)
        return members

    def close(self):
        self.cache.close()
