import json
import unittest
from datetime import datetime, timezone

from correlate.models import Member
from correlate.resolver import correlate
from degradation import DegradationPolicy, synthetic_activity
from ingest.errors import UpstreamFailure, PartialData, MalformedReference, NETWORK, AUTH
from normalize.models import CommitRecord
from scoring.models import DATA_SOURCE_LIVE, DATA_SOURCE_SYNTHETIC
from scoring.rollup import rollup

NOW = datetime(2025, 3, 15, tzinfo=timezone.utc)
ROSTER = [Member('m1', 'Alice', 'alice@example.com', 'alice'), Member('m2', 'Bob', 'bob@example.com', 'bob')]


def assert_same_shape(test, a, b, path='$'):
    """Same keys everywhere; same value types wherever both sides are non-null."""
    if isinstance(a, dict) and isinstance(b, dict):
        test.assertEqual(set(a), set(b), path)
        for key in a:
            assert_same_shape(test, a[key], b[key], f"{path}.{key}")
    elif isinstance(a, list) and isinstance(b, list):
        if a and b:
            assert_same_shape(test, a[0], b[0], f"{path}[0]")
    elif a is not None and b is not None:
        test.assertIs(type(a), type(b), path)


def _fail(exc):
    def fn():
        raise exc
    return fn


class TestFetchAll(unittest.TestCase):
    def setUp(self):
        self.policy = DegradationPolicy(max_retries=1)

    def test_joins_all_fetches_in_order(self):
        c = [CommitRecord(NOW, author_login='alice')]
        i = [CommitRecord(NOW, author_login='bob')]
        records = self.policy.fetch_all({'commits': lambda: c, 'pull_requests': lambda: [], 'issues': lambda: i})
        self.assertEqual(records, c + i)

    def test_partial_failure_raises_partial_data(self):
        with self.assertRaises(PartialData) as ctx:
            self.policy.fetch_all({'commits': lambda: [], 'issues': _fail(UpstreamFailure(AUTH, 'bad token'))})
        self.assertIn('issues', ctx.exception.failed)
        self.assertEqual(ctx.exception.kind, AUTH)

    def test_total_failure_raises_upstream_failure(self):
        with self.assertRaises(UpstreamFailure) as ctx:
            self.policy.fetch_all({'commits': _fail(UpstreamFailure(NETWORK, 'down'))})
        self.assertNotIsInstance(ctx.exception, PartialData)

    def test_transient_failure_is_retried_by_policy(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise UpstreamFailure(NETWORK, 'blip')
            return []

        policy = DegradationPolicy(max_retries=2, backoff_base=0, sleep=lambda s: None)
        self.assertEqual(policy.fetch_all({'commits': flaky}), [])
        self.assertEqual(len(calls), 2)


class TestSynthetic(unittest.TestCase):
    def test_synthetic_shape_matches_live(self):
        live = rollup(correlate([CommitRecord(NOW, author_login='alice', additions=3)], ROSTER), ROSTER, team_id='t', now=NOW)
        synthetic = DegradationPolicy(seed=7).synthesize('t', ROSTER, now=NOW)
        self.assertEqual(live.data_source, DATA_SOURCE_LIVE)
        self.assertEqual(synthetic.data_source, DATA_SOURCE_SYNTHETIC)
        live_d = json.loads(json.dumps(live.to_dict()))
        synth_d = json.loads(json.dumps(synthetic.to_dict()))
        assert_same_shape(self, live_d, synth_d)
        self.assertEqual(len(live_d['member_stats']), len(synth_d['member_stats']))
        self.assertEqual(len(live_d['daily_commits']), len(synth_d['daily_commits']))

    def test_synthetic_values_are_plausible(self):
        stats = DegradationPolicy(seed=3).synthesize('t', ROSTER, now=NOW)
        self.assertEqual([ms.member_id for ms in stats.member_stats], ['m1', 'm2'])
        self.assertGreaterEqual(stats.total_commits, sum(ms.commit_count for ms in stats.member_stats))
        self.assertEqual(stats.total_prs, sum(ms.pr_count for ms in stats.member_stats))
        self.assertEqual(sum(stats.pr_breakdown.values()), stats.total_prs)
        self.assertEqual(sum(stats.issue_breakdown.values()), stats.total_issues)
        for ms in stats.member_stats:
            self.assertTrue(0 <= ms.commit_count <= 40)
            if ms.last_active is not None:
                self.assertLessEqual(ms.last_active, NOW)

    def test_seed_makes_placeholders_reproducible(self):
        a = DegradationPolicy(seed=11).synthesize('t', ROSTER, now=NOW).to_dict()
        b = DegradationPolicy(seed=11).synthesize('t', ROSTER, now=NOW).to_dict()
        self.assertEqual(a, b)

    def test_seeded_team_placeholders_ignore_call_order(self):
        policy = DegradationPolicy(seed=11)
        a_first = policy.synthesize('a', ROSTER, now=NOW).to_dict()
        b_second = policy.synthesize('b', ROSTER, now=NOW).to_dict()
        other = DegradationPolicy(seed=11)
        self.assertEqual(other.synthesize('b', ROSTER, now=NOW).to_dict(), b_second)
        self.assertEqual(other.synthesize('a', ROSTER, now=NOW).to_dict(), a_first)

    def test_synthetic_closed_issues_carry_close_times(self):
        import random
        activity = synthetic_activity(ROSTER * 5, random.Random(2), NOW)
        for a in activity:
            record = a.record
            if record.state in ('closed', 'merged'):
                self.assertIsNotNone(record.closed_at)
                self.assertLessEqual(record.timestamp, record.closed_at)
                self.assertLessEqual(record.closed_at, NOW)
            else:
                self.assertIsNone(record.closed_at)

    def test_empty_roster(self):
        stats = DegradationPolicy(seed=1).synthesize('t', [], now=NOW)
        self.assertEqual(stats.member_stats, [])
        self.assertEqual(stats.data_source, DATA_SOURCE_SYNTHETIC)

    def test_synthetic_activity_attribution(self):
        import random
        activity = synthetic_activity(ROSTER, random.Random(5), NOW)
        self.assertTrue(all(a.member_id in ('m1', 'm2', None) for a in activity))


class TestRun(unittest.TestCase):
    def test_run_returns_live_stats(self):
        live = rollup([], ROSTER, team_id='t', now=NOW)
        self.assertIs(DegradationPolicy().run('t', ROSTER, lambda: live), live)

    def test_run_falls_back_on_activity_errors(self):
        policy = DegradationPolicy(seed=1)
        for exc in (MalformedReference('nope'), UpstreamFailure(NETWORK, 'down'), PartialData({'issues': UpstreamFailure(AUTH, 'x')})):
            with self.assertLogs('degradation', level='WARNING'):
                stats = policy.run('t', ROSTER, _fail(exc), now=NOW)
            self.assertEqual(stats.data_source, DATA_SOURCE_SYNTHETIC)
            self.assertEqual(stats.team_id, 't')

    def test_run_does_not_hide_programming_errors(self):
        with self.assertRaises(KeyError):
            DegradationPolicy().run('t', ROSTER, _fail(KeyError('bug')))


if __name__ == '__main__':
    unittest.main()
