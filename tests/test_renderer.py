import csv
import io
import json
import unittest
from datetime import datetime, timezone

from report.renderer import render, render_csv, CSV_HEADER, FORMATS
from scoring.models import MemberStats, TeamStats, DATA_SOURCE_LIVE, DATA_SOURCE_SYNTHETIC

T1 = datetime(2025, 3, 13, 12, 0, tzinfo=timezone.utc)


def _teams():
    live = TeamStats(
        'alpha',
        [MemberStats('m1', commit_count=3, pr_count=1, issue_count=2, last_active=T1, additions=10, deletions=4), MemberStats('m2')],
        total_commits=4,
        total_prs=1,
        total_issues=2,
        data_source=DATA_SOURCE_LIVE,
        additions=10,
        deletions=4,
        last_active=T1,
    )
    synthetic = TeamStats('beta', [MemberStats('m3', commit_count=5)], 5, 0, 0, data_source=DATA_SOURCE_SYNTHETIC)
    return [live, synthetic]


NAMES = {'m1': 'Alice <Admin>', 'm2': 'Bob', 'm3': 'Carol'}


class TestRenderer(unittest.TestCase):
    def test_text_marks_placeholder_teams(self):
        out = render(_teams(), 'text')
        self.assertIn('Team alpha: 4 commits, 1 PRs, 2 issues', out)
        self.assertIn('Team beta (placeholder data)', out)
        self.assertNotIn('alpha (placeholder data)', out)

    def test_markdown_uses_display_names(self):
        out = render(_teams(), 'md', names=NAMES, scope='2 team(s)')
        self.assertIn('# Course Activity Report', out)
        self.assertIn('| Bob | 0 | 0 | 0 |', out)
        self.assertIn('## beta (placeholder data)', out)
        self.assertIn('Live data was unavailable for beta', out)
        self.assertIn('Commits: **9**', out)

    def test_html_escapes_names(self):
        out = render(_teams(), 'html', names=NAMES)
        self.assertIn('Alice &lt;Admin&gt;', out)
        self.assertNotIn('Alice <Admin>', out)
        self.assertIn('beta', out)

    def test_csv_rows(self):
        rows = list(csv.reader(io.StringIO(render_csv(_teams(), NAMES))))
        self.assertEqual(rows[0], CSV_HEADER)
        # two member rows and one total row for alpha, one member row and one total row for beta
        self.assertEqual(len(rows), 6)
        self.assertEqual(rows[1][:5], ['alpha', 'live', 'm1', 'Alice <Admin>', '3'])
        self.assertEqual(rows[3][:5], ['alpha', 'live', '', '', '4'])
        self.assertEqual(rows[5][1], 'synthetic')

    def test_json_round_trips(self):
        data = json.loads(render(_teams(), 'json'))
        self.assertEqual([t['team_id'] for t in data], ['alpha', 'beta'])
        self.assertEqual(data[1]['data_source'], 'synthetic')
        self.assertEqual(data[0]['member_stats'][0]['last_active'], T1.isoformat())

    def test_every_format_renders_empty_course(self):
        for fmt in FORMATS:
            self.assertIsInstance(render([], fmt), str)

    def test_unknown_format(self):
        with self.assertRaises(ValueError):
            render(_teams(), 'pdf')


if __name__ == '__main__':
    unittest.main()
