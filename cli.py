"""
CLI entry point for teampulse. Reads a teams file, aggregates every team's repository activity and renders a report.

Teams file format (JSON):
    [{"team_id": "t1", "repository_url": "https://github.com/org/repo",
      "roster": [{"member_id": "m1", "display_name": "Alice", "email": "a@example.com", "external_id": "alice"}]}]
Roster entries may also be bare member ids listed in a top-level "members" directory:
    {"members": [{...}], "teams": [{"team_id": "t1", "repository_url": "...", "roster": ["m1"]}]}
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from aggregator import build_aggregator
from normalize.util import normalize_member
from report.renderer import render, FORMATS
from settings import load_settings
from storage.directory import InMemoryDirectory
from storage.retry import configure_retry

log = logging.getLogger(__name__)


def _load_json_file(path: str, description: str):
    """Load a JSON file and return the parsed object or None on failure (the error is printed)."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read {description} {path}: {e}", file=sys.stderr)
        return None


def _split_teams_document(doc: Any) -> Tuple[List[Dict[str, Any]], Optional[InMemoryDirectory]]:
    """Accept either a bare list of teams or a {"members": [...], "teams": [...]} document."""
    if isinstance(doc, list):
        return doc, None
    if isinstance(doc, dict):
        directory = None
        if doc.get('members'):
            directory = InMemoryDirectory(normalize_member(m) for m in doc['members'])
        return list(doc.get('teams') or []), directory
    raise ValueError('teams file must contain a list or an object with a "teams" list')


def _display_names(teams: List[Dict[str, Any]], directory: Optional[InMemoryDirectory]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for team in teams:
        for entry in team.get('roster') or []:
            if isinstance(entry, dict):
                m = normalize_member(entry)
                names[m.member_id] = m.display_name or m.member_id
    if directory is not None:
        for team in teams:
            for entry in team.get('roster') or []:
                if isinstance(entry, str):
                    m = directory.find_member(entry)
                    if m is not None:
                        names[m.member_id] = m.display_name or m.member_id
    return names


def write_output(rendered: str, out_file: str):
    """Write output to file or stdout."""
    if not out_file:
        print(rendered)
        return
    out_dir = os.path.dirname(out_file)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(out_file, 'w', encoding='utf-8') as f:
        f.write(rendered)
    print(f"Wrote report to {out_file}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Aggregate repository activity per team and render a course report.")
    parser.add_argument('--teams-file', required=True, help='JSON file describing teams, repositories and rosters')
    parser.add_argument('--github_token', default=None, help='GitHub API token (or set GITHUB_TOKEN env var)')
    parser.add_argument('--config', default=None, help='YAML settings file (default: config/teampulse.yaml or TEAMPULSE_CONFIG)')
    parser.add_argument('--output', default='text', choices=FORMATS, help='Report format (default: text)')
    parser.add_argument('--out-file', default='', help='Write the report here instead of stdout')
    parser.add_argument('--timeout', type=float, default=None, help='Per-call request timeout in seconds')
    parser.add_argument('--max-retries', type=int, default=None, help='Attempts per upstream call (1 disables retrying)')
    parser.add_argument('--commit-limit', type=int, default=None, help='Maximum commits fetched per repository')
    parser.add_argument('--commit-stats', action='store_true', help='Fetch per-commit additions/deletions (one extra request per commit)')
    parser.add_argument('--seed', type=int, default=None, help='Seed for placeholder data, for reproducible reports')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    return parser


def _apply_overrides(settings: Dict[str, Any], args) -> Dict[str, Any]:
    overrides = {
        'github_token': args.github_token,
        'request_timeout': args.timeout,
        'max_retries': args.max_retries,
        'commit_limit': args.commit_limit,
    }
    for key, value in overrides.items():
        if value is not None:
            settings[key] = value
    if args.commit_stats:
        settings['commit_stats'] = True
    if args.verbose:
        settings['log_level'] = 'DEBUG'
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _apply_overrides(load_settings(args.config), args)
    except (OSError, ValueError) as e:
        parser.error(f"invalid settings: {e}")

    logging.basicConfig(
        level=getattr(logging, str(settings.get('log_level', 'INFO')).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_retry(max_retries=settings.get('max_retries'), backoff_base=settings.get('backoff_base'))

    doc = _load_json_file(args.teams_file, 'teams file')
    if doc is None:
        return 2
    try:
        teams, directory = _split_teams_document(doc)
    except ValueError as e:
        print(f"Invalid teams file {args.teams_file}: {e}", file=sys.stderr)
        return 2

    aggregator = build_aggregator(settings, directory=directory, seed=args.seed)
    try:
        results = aggregator.aggregate_course(teams)
    finally:
        if aggregator.directory is not None:
            aggregator.directory.close()

    rendered = render(
        results,
        fmt=args.output,
        names=_display_names(teams, directory),
        generated_at=datetime.now(timezone.utc).isoformat(),
        scope=f"{len(results)} team(s)",
    )
    write_output(rendered, args.out_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
