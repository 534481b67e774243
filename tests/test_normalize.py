import unittest
from datetime import datetime, timezone

from normalize.models import CommitRecord, STATE_CLOSED, STATE_MERGED
from normalize.util import normalize_member, normalize_commit, normalize_issue, normalize_pull_request, parse_timestamp


class TestNormalize(unittest.TestCase):
    def test_normalize_member_snake_case(self):
        raw = {'member_id': 'm1', 'display_name': 'Alice', 'email': 'a@example.com', 'external_id': 'alice'}
        member = normalize_member(raw)
        self.assertEqual(member.member_id, 'm1')
        self.assertEqual(member.display_name, 'Alice')
        self.assertEqual(member.email, 'a@example.com')
        self.assertEqual(member.external_id, 'alice')

    def test_normalize_member_service_row(self):
        raw = {'_id': 42, 'name': 'Bob', 'email': 'b@example.com', 'githubId': 'bob'}
        member = normalize_member(raw)
        self.assertEqual(member.member_id, '42')
        self.assertEqual(member.display_name, 'Bob')
        self.assertEqual(member.external_id, 'bob')

    def test_normalize_member_without_external_id(self):
        self.assertEqual(normalize_member({'member_id': 'm3', 'name': 'Carol'}).external_id, '')

    def test_normalize_commit_without_platform_account(self):
        raw = {
            'sha': 'abc',
            'author': None,
            'commit': {'author': {'name': 'Carol', 'email': 'carol@example.com', 'date': '2025-02-01T08:30:00Z'}},
        }
        record = normalize_commit(raw)
        self.assertIsInstance(record, CommitRecord)
        self.assertIsNone(record.author_login)
        self.assertEqual(record.author_display_name, 'Carol')
        self.assertEqual(record.timestamp, datetime(2025, 2, 1, 8, 30, tzinfo=timezone.utc))
        self.assertEqual((record.additions, record.deletions), (0, 0))

    def test_normalize_issue_closed(self):
        record = normalize_issue({'number': 5, 'state': 'closed', 'created_at': '2025-02-01T00:00:00Z', 'user': {'login': 'dana'}})
        self.assertEqual(record.state, STATE_CLOSED)
        self.assertEqual(record.author_login, 'dana')
        self.assertEqual(record.identifier, '5')

    def test_closed_and_merged_timestamps(self):
        issue = normalize_issue({'number': 6, 'state': 'closed', 'created_at': '2025-02-01T00:00:00Z', 'closed_at': '2025-02-03T10:00:00Z'})
        self.assertEqual(issue.closed_at, datetime(2025, 2, 3, 10, 0, tzinfo=timezone.utc))
        pr = normalize_pull_request({'number': 7, 'state': 'closed', 'created_at': '2025-02-01T00:00:00Z',
                                     'closed_at': '2025-02-02T00:00:00Z', 'merged_at': '2025-02-02T00:00:00Z'})
        self.assertEqual(pr.state, STATE_MERGED)
        self.assertEqual(pr.merged_at, datetime(2025, 2, 2, tzinfo=timezone.utc))
        self.assertIsNone(normalize_issue({'number': 8, 'state': 'open', 'created_at': '2025-02-01T00:00:00Z'}).closed_at)

    def test_parse_timestamp(self):
        self.assertIsNone(parse_timestamp(None))
        self.assertIsNone(parse_timestamp('yesterday'))
        self.assertEqual(parse_timestamp('2025-01-01T00:00:00').tzinfo, timezone.utc)

    def test_unknown_state_rejected(self):
        with self.assertRaises(ValueError):
            CommitRecord(datetime.now(timezone.utc), state='draft')


if __name__ == '__main__':
    unittest.main()
