"""
GitHub activity source: fetch commits, pull requests, issues and contributors for one repository.

Every call is bounded by ``limit`` and by a wall-clock deadline. Failures are raised as
ingest.errors.UpstreamFailure, so an empty list always means "no activity". Nothing here retries.
"""
import logging
import os
import time
from typing import List, Dict, Any, Optional, Callable
from urllib.parse import urlparse, unquote
import requests
from ingest.errors import (
    MalformedReference,
    UpstreamFailure,
    RATE_LIMITED,
    AUTH,
    NOT_FOUND,
    TIMEOUT,
    NETWORK,
    SERVER_ERROR,
    BAD_RESPONSE,
)
from normalize.models import CommitRecord, PullRequestRecord, IssueRecord, ContributorSummary
from normalize.util import normalize_commit, normalize_pull_request, normalize_issue, normalize_contributor, is_pull_request_item
from storage.retry import parse_rate_headers

log = logging.getLogger(__name__)

DEFAULT_API_URL = os.getenv("TEAMPULSE_API_URL", "https://api.github.com")
DEFAULT_TIMEOUT = float(os.getenv("TEAMPULSE_REQUEST_TIMEOUT", "10"))

# the API's page size ceiling
MAX_PER_PAGE = 100

DEFAULT_COMMIT_LIMIT = 100
DEFAULT_PR_LIMIT = 100
DEFAULT_ISSUE_LIMIT = 100
DEFAULT_CONTRIBUTOR_LIMIT = 100

STATE_FILTERS = ('open', 'closed', 'all')


class RepositoryReference:
    """owner/repo pair, already stripped of URL prefix and .git suffix."""

    def __init__(self, owner: str, repo: str):
        if not owner or not repo:
            raise ValueError("owner and repo must be non-empty")
        self.owner = owner
        self.repo = repo

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __eq__(self, other):
        return isinstance(other, RepositoryReference) and (self.owner, self.repo) == (other.owner, other.repo)

    def __hash__(self):
        return hash((self.owner, self.repo))

    def __repr__(self):
        return f"<RepositoryReference {self.full_name}>"


def _split_path(path: str) -> List[str]:
    return [unquote(p) for p in path.split('/') if p]


def parse_repository_url(url: str) -> RepositoryReference:
    """
    Parse ``https://host/<owner>/<repo>[.git]`` (extra trailing path segments are ignored)
    or the scp-like ``git@host:<owner>/<repo>.git`` form. Raises MalformedReference.
    """
    if not url or not isinstance(url, str):
        raise MalformedReference(str(url), 'empty repository url')
    text = url.strip()
    if text.startswith('git@') and ':' in text:
        parts = _split_path(text.split(':', 1)[1])
    else:
        parsed = urlparse(text)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise MalformedReference(url)
        parts = _split_path(parsed.path)
    if len(parts) < 2:
        raise MalformedReference(url)
    owner, repo = parts[0].strip(), parts[1].strip()
    if repo.endswith('.git'):
        repo = repo[:-len('.git')]
    if not owner or not repo:
        raise MalformedReference(url)
    return RepositoryReference(owner, repo)


def _failure_from_response(resp, url: str) -> UpstreamFailure:
    status = getattr(resp, 'status_code', 0)
    ra, rl_remaining, rl_reset = parse_rate_headers(resp)
    if status in (403, 429) and (ra is not None or (rl_remaining is not None and rl_remaining <= 0) or status == 429):
        if ra is None and rl_reset:
            ra = max(0.0, float(rl_reset) - time.time())
        return UpstreamFailure(RATE_LIMITED, f"rate limited ({status}) on {url}", retry_after=ra)
    if status in (401, 403):
        return UpstreamFailure(AUTH, f"authentication failed ({status}) on {url}")
    if status == 404:
        return UpstreamFailure(NOT_FOUND, f"not found: {url}")
    if status >= 500:
        return UpstreamFailure(SERVER_ERROR, f"server error ({status}) on {url}", retry_after=ra)
    return UpstreamFailure(BAD_RESPONSE, f"unexpected status {status} on {url}")


class GitHubActivitySource:
    """REST client for the repository activity endpoints."""

    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.token = token
        self.base_url = (base_url or DEFAULT_API_URL).rstrip('/')
        self.timeout = float(timeout) if timeout is not None else DEFAULT_TIMEOUT
        self.headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    def _get_json(self, url: str, params: Dict[str, Any], timeout: float) -> Any:
        try:
            resp = requests.get(url, headers=self.headers, params=params, timeout=timeout)
        except requests.Timeout as ex:
            raise UpstreamFailure(TIMEOUT, f"timed out after {timeout:.1f}s on {url}") from ex
        except requests.RequestException as ex:
            raise UpstreamFailure(NETWORK, f"{type(ex).__name__} on {url}: {ex}") from ex
        if resp.status_code != 200:
            raise _failure_from_response(resp, url)
        try:
            return resp.json()
        except ValueError as ex:
            raise UpstreamFailure(BAD_RESPONSE, f"undecodable body from {url}") from ex

    def _paginate(
        self,
        path: str,
        params: Dict[str, Any],
        limit: int,
        keep: Optional[Callable[[Dict[str, Any]], bool]] = None,
        deadline: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Collect up to ``limit`` items across pages; the whole walk shares one deadline."""
        if limit <= 0:
            return []
        url = f"{self.base_url}{path}"
        per_page = min(MAX_PER_PAGE, limit)
        if deadline is None:
            deadline = self._deadline()
        items: List[Dict[str, Any]] = []
        page = 1
        while len(items) < limit:
            remaining = self._remaining(deadline, url, f"page {page}")
            data = self._get_json(url, dict(params, page=page, per_page=per_page), remaining)
            if not isinstance(data, list):
                raise UpstreamFailure(BAD_RESPONSE, f"expected a list from {url}, got {type(data).__name__}")
            items.extend(d for d in data if isinstance(d, dict) and (keep is None or keep(d)))
            if len(data) < per_page:
                break
            page += 1
        log.debug("fetched %d item(s) from %s", min(len(items), limit), url)
        return items[:limit]

    def _deadline(self) -> float:
        return time.monotonic() + self.timeout

    def _remaining(self, deadline: float, url: str, where: str) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise UpstreamFailure(TIMEOUT, f"deadline of {self.timeout:.1f}s exceeded on {url} ({where})")
        return remaining

    def _normalize_items(self, normalize: Callable[[Dict[str, Any]], Any], raw: List[Dict[str, Any]], path: str) -> list:
        try:
            return [normalize(item) for item in raw]
        except (AttributeError, TypeError, ValueError) as ex:
            raise UpstreamFailure(BAD_RESPONSE, f"malformed item from {self.base_url}{path}: {ex}") from ex

    def _check_state(self, state: str):
        if state not in STATE_FILTERS:
            raise ValueError(f"state must be one of {STATE_FILTERS}, got {state!r}")

    def fetch_commits(self, ref: RepositoryReference, limit: int = DEFAULT_COMMIT_LIMIT, author: Optional[str] = None, with_stats: bool = False) -> List[CommitRecord]:
        """
        Commits, newest first. With ``with_stats`` each commit's detail is fetched for additions/deletions;
        the detail requests share the listing's deadline.
        """
        params: Dict[str, Any] = {}
        if author:
            params['author'] = author
        path = f"/repos/{ref.owner}/{ref.repo}/commits"
        deadline = self._deadline()
        raw = self._paginate(path, params, limit, deadline=deadline)
        if with_stats:
            raw = [self._commit_detail(ref, c, deadline) for c in raw]
        return self._normalize_items(normalize_commit, raw, path)

    def _commit_detail(self, ref: RepositoryReference, commit: Dict[str, Any], deadline: float) -> Dict[str, Any]:
        sha = commit.get('sha')
        if not sha:
            return commit
        url = f"{self.base_url}/repos/{ref.owner}/{ref.repo}/commits/{sha}"
        detail = self._get_json(url, {}, self._remaining(deadline, url, 'commit detail'))
        return detail if isinstance(detail, dict) else commit

    def fetch_pull_requests(self, ref: RepositoryReference, limit: int = DEFAULT_PR_LIMIT, state: str = 'all', creator: Optional[str] = None) -> List[PullRequestRecord]:
        self._check_state(state)
        path = f"/repos/{ref.owner}/{ref.repo}/pulls"
        raw = self._paginate(path, {'state': state}, limit)
        # the pulls endpoint has no creator filter, so match the author client-side
        if creator:
            raw = [p for p in raw if isinstance(p.get('user'), dict) and p['user'].get('login') == creator]
        return self._normalize_items(normalize_pull_request, raw, path)

    def fetch_issues(self, ref: RepositoryReference, limit: int = DEFAULT_ISSUE_LIMIT, state: str = 'all', creator: Optional[str] = None) -> List[IssueRecord]:
        self._check_state(state)
        params: Dict[str, Any] = {'state': state}
        if creator:
            params['creator'] = creator
        path = f"/repos/{ref.owner}/{ref.repo}/issues"
        raw = self._paginate(path, params, limit, keep=lambda i: not is_pull_request_item(i))
        return self._normalize_items(normalize_issue, raw, path)

    def fetch_contributors(self, ref: RepositoryReference, limit: int = DEFAULT_CONTRIBUTOR_LIMIT) -> List[ContributorSummary]:
        path = f"/repos/{ref.owner}/{ref.repo}/contributors"
        raw = self._paginate(path, {}, limit)
        return self._normalize_items(normalize_contributor, raw, path)
