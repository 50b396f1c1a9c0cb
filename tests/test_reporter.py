"""
Unit tests for Reporter counters
"""

import logging

from pseudomr.reporter import Reporter


class TestReporterCounters:
    """Tests for increment, set and get"""

    def test_increment_creates_and_accumulates(self):
        """Test that increments add up"""
        reporter = Reporter()
        reporter.increment('reads', 'total', 2)
        reporter.increment('reads', 'total', 3)

        assert reporter.get('reads', 'total') == 5

    def test_increment_defaults_to_one(self):
        """Test the default amount"""
        reporter = Reporter()
        reporter.increment('reads', 'total')

        assert reporter.get('reads', 'total') == 1

    def test_non_positive_increment_is_ignored(self):
        """Test that zero and negative amounts leave counters unchanged"""
        reporter = Reporter()
        reporter.increment('g', 'n', 4)
        reporter.increment('g', 'n', 0)
        reporter.increment('g', 'n', -5)

        assert reporter.get('g', 'n') == 4

    def test_non_positive_increment_does_not_create(self):
        """Test that ignored increments do not create counters"""
        reporter = Reporter()
        reporter.increment('g', 'n', 0)
        reporter.increment('g', 'n', -5)

        assert reporter.get('g', 'n') is None
        assert reporter.groups() == set()

    def test_set_overwrites(self):
        """Test setting a counter"""
        reporter = Reporter()
        reporter.increment('g', 'n', 10)
        reporter.set('g', 'n', 3)

        assert reporter.get('g', 'n') == 3

    def test_non_positive_set_is_ignored(self):
        """Test that a counter can not be set to zero or below"""
        reporter = Reporter()
        reporter.set('g', 'n', 3)
        reporter.set('g', 'n', 0)
        reporter.set('g', 'n', -1)

        assert reporter.get('g', 'n') == 3

    def test_get_unknown_is_absent(self):
        """Test that unknown counters are None, not zero"""
        reporter = Reporter()
        reporter.increment('g', 'n')

        assert reporter.get('g', 'other') is None
        assert reporter.get('other', 'n') is None


class TestReporterListing:
    """Tests for groups, names and snapshots"""

    def test_groups_and_names(self):
        """Test listing counter groups and names"""
        reporter = Reporter()
        reporter.increment('a', 'x')
        reporter.increment('a', 'y')
        reporter.increment('b', 'z')

        assert reporter.groups() == {'a', 'b'}
        assert reporter.names('a') == {'x', 'y'}
        assert reporter.names('unknown') == set()

    def test_snapshots_are_copies(self):
        """Test that snapshots do not change with the reporter"""
        reporter = Reporter()
        reporter.increment('a', 'x')
        snapshot = reporter.counters('a')
        everything = reporter.to_dict()
        reporter.increment('a', 'x')

        assert snapshot == {'x': 1}
        assert everything == {'a': {'x': 1}}

    def test_contains(self):
        """Test membership on (group, name) pairs"""
        reporter = Reporter()
        reporter.increment('a', 'x')

        assert ('a', 'x') in reporter
        assert ('a', 'y') not in reporter

    def test_clear(self):
        """Test that clear removes every counter"""
        reporter = Reporter()
        reporter.increment('a', 'x')
        reporter.clear()

        assert reporter.groups() == set()
        assert reporter.get('a', 'x') is None

    def test_log_counters(self, caplog):
        """Test that a group's counters are logged sorted by name"""
        reporter = Reporter()
        reporter.increment('reads', 'used', 2)
        reporter.increment('reads', 'total', 5)

        with caplog.at_level(logging.INFO):
            reporter.log_counters('reads')

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ['Counters for reads: 2', '  total=5', '  used=2']
