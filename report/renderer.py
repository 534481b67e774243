"""
Report renderer: course activity summaries as text, Markdown, CSV, JSON or HTML.
Markdown and HTML use the Jinja2 templates in report/templates.
"""

from typing import Optional, List, Dict, Any
import os
import json
import io
import csv
from jinja2 import Environment, FileSystemLoader, select_autoescape
from scoring.models import TeamStats

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')

CSV_HEADER = ['team_id', 'data_source', 'member_id', 'display_name', 'commits', 'pull_requests', 'issues', 'additions', 'deletions', 'last_active']

FORMATS = ('text', 'md', 'csv', 'json', 'html')

_env: Optional[Environment] = None


def _environment() -> Environment:
    global _env
    if _env is None:
        _env = Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(['html', 'xml']), trim_blocks=True, lstrip_blocks=True)
    return _env


def _context(teams: List[TeamStats], names: Optional[Dict[str, str]], generated_at: Optional[str], scope: Optional[str]) -> Dict[str, Any]:
    names = names or {}
    rows = []
    for t in teams:
        d = t.to_dict()
        for ms in d['member_stats']:
            ms['display_name'] = names.get(ms['member_id'], ms['member_id'])
        rows.append(d)
    synthetic = [t.team_id for t in teams if t.is_synthetic]
    return {
        'teams': rows,
        'synthetic_teams': synthetic,
        'generated_at': generated_at,
        'scope': scope,
        'totals': {
            'commits': sum(t.total_commits for t in teams),
            'prs': sum(t.total_prs for t in teams),
            'issues': sum(t.total_issues for t in teams),
        },
    }


def render_text(teams: List[TeamStats]) -> str:
    """Render a plain-text summary, one block per team."""
    lines = []
    for t in teams:
        marker = ' (placeholder data)' if t.is_synthetic else ''
        lines.append(f"Team {t.team_id}{marker}: {t.total_commits} commits, {t.total_prs} PRs, {t.total_issues} issues")
        for ms in t.member_stats:
            lines.append(f"  {ms.member_id}: {ms.commit_count} commits, {ms.pr_count} PRs, {ms.issue_count} issues")
    return "\n".join(lines)


def render_markdown(teams: List[TeamStats], names: Optional[Dict[str, str]] = None, generated_at: Optional[str] = None, scope: Optional[str] = None) -> str:
    return _environment().get_template('course.md.j2').render(**_context(teams, names, generated_at, scope))


def render_html(teams: List[TeamStats], names: Optional[Dict[str, str]] = None, generated_at: Optional[str] = None, scope: Optional[str] = None) -> str:
    return _environment().get_template('course.html.j2').render(**_context(teams, names, generated_at, scope))


def render_csv(teams: List[TeamStats], names: Optional[Dict[str, str]] = None) -> str:
    """One row per member, plus one team-total row (member_id empty) per team."""
    names = names or {}
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for t in teams:
        for ms in t.member_stats:
            writer.writerow([
                t.team_id, t.data_source, ms.member_id, names.get(ms.member_id, ''),
                ms.commit_count, ms.pr_count, ms.issue_count, ms.additions, ms.deletions,
                ms.last_active.isoformat() if ms.last_active else '',
            ])
        writer.writerow([
            t.team_id, t.data_source, '', '',
            t.total_commits, t.total_prs, t.total_issues, t.additions, t.deletions,
            t.last_active.isoformat() if t.last_active else '',
        ])
    return output.getvalue()


def render_json(teams: List[TeamStats]) -> str:
    return json.dumps([t.to_dict() for t in teams], indent=2)


def render(
    teams: List[TeamStats],
    fmt: str = 'text',
    names: Optional[Dict[str, str]] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    """Main render function; unknown formats raise ValueError."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(teams, names, generated_at, scope)
    if fmt_l == 'csv':
        return render_csv(teams, names)
    if fmt_l in ('html', 'htm'):
        return render_html(teams, names, generated_at, scope)
    if fmt_l == 'json':
        return render_json(teams)
    if fmt_l in ('text', 'txt'):
        return render_text(teams)
    raise ValueError(f"unknown report format: {fmt!r}")
