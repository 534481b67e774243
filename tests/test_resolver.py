import unittest
from datetime import datetime, timezone

from correlate.models import Member
from correlate.resolver import resolve, resolve_with_rule, correlate, resolve_login
from normalize.models import CommitRecord, IssueRecord

TS = datetime(2025, 1, 1, tzinfo=timezone.utc)

ALICE = Member('m1', display_name='Alice Smith', email='alice@example.com', external_id='alice')
BOB = Member('m2', display_name='Bob Jones', email='bob@example.com', external_id='bob')
UNREGISTERED = Member('m3', display_name='Carol', email='', external_id='')


class TestResolver(unittest.TestCase):
    def test_login_beats_email(self):
        # login points at alice, email points at bob: the login rule wins
        record = CommitRecord(TS, author_login='alice', author_email='bob@example.com')
        self.assertEqual(resolve(record, [BOB, ALICE]), 'm1')
        self.assertEqual(resolve_with_rule(record, [BOB, ALICE]), ('m1', 'login'))

    def test_display_name_beats_email(self):
        record = CommitRecord(TS, author_display_name='Bob Jones', author_email='alice@example.com')
        self.assertEqual(resolve_with_rule(record, [ALICE, BOB]), ('m2', 'display_name'))

    def test_email_fallback_when_login_stripped(self):
        record = CommitRecord(TS, author_login=None, author_display_name='someone else', author_email='bob@example.com')
        self.assertEqual(resolve_with_rule(record, [ALICE, BOB]), ('m2', 'email'))

    def test_login_match_is_case_sensitive(self):
        record = CommitRecord(TS, author_login='Alice')
        self.assertIsNone(resolve(record, [ALICE, BOB]))

    def test_email_match_is_case_insensitive(self):
        record = CommitRecord(TS, author_email='  ALICE@Example.COM ')
        self.assertEqual(resolve(record, [ALICE, BOB]), 'm1')

    def test_display_name_match_is_exact(self):
        self.assertIsNone(resolve(CommitRecord(TS, author_display_name='alice smith'), [ALICE]))
        self.assertEqual(resolve(CommitRecord(TS, author_display_name='Alice Smith'), [ALICE]), 'm1')

    def test_empty_fields_never_match(self):
        # a record with no login must not match a member whose external id is empty
        record = IssueRecord(TS, author_login=None, author_display_name=None, author_email='')
        self.assertIsNone(resolve(record, [UNREGISTERED]))
        self.assertIsNone(resolve(CommitRecord(TS, author_login=''), [UNREGISTERED]))

    def test_unmatched_returns_none(self):
        self.assertIsNone(resolve(CommitRecord(TS, author_login='carol'), [ALICE, BOB]))
        self.assertIsNone(resolve(CommitRecord(TS, author_login='alice'), []))

    def test_roster_order_breaks_ties(self):
        twin = Member('m9', display_name='Other', email='x@example.com', external_id='alice')
        self.assertEqual(resolve(CommitRecord(TS, author_login='alice'), [twin, ALICE]), 'm9')

    def test_correlate_keeps_unattributed_records(self):
        records = [CommitRecord(TS, author_login='alice'), CommitRecord(TS, author_login='carol')]
        correlated = correlate(records, [ALICE, BOB])
        self.assertEqual([c.member_id for c in correlated], ['m1', None])
        self.assertFalse(correlated[1].attributed)
        self.assertIs(correlated[1].record, records[1])

    def test_resolve_login(self):
        self.assertEqual(resolve_login('bob', [ALICE, BOB]), 'm2')
        self.assertIsNone(resolve_login('BOB', [ALICE, BOB]))
        self.assertIsNone(resolve_login('', [UNREGISTERED]))


if __name__ == '__main__':
    unittest.main()
