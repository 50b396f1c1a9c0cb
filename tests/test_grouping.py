"""
Unit tests for the group reader and the repeated values multiset
"""

import logging

import pytest

from pseudomr.errors import MalformedRecordError
from pseudomr.grouping import RepeatedValues, read_groups


class TestRepeatedValues:
    """Tests for the counted multiset"""

    def test_counts_duplicates_once(self):
        """Test that duplicates share one entry"""
        values = RepeatedValues()
        for v in ['10', '10', '10', '20']:
            values.add(v)

        assert len(values) == 4
        assert values.distinct == 2
        assert values.count('10') == 3
        assert values.count('missing') == 0

    def test_iterates_in_first_insertion_order(self):
        """Test that each value is repeated contiguously by its count"""
        values = RepeatedValues()
        for v in ['b', 'a', 'b', 'c', 'a', 'b']:
            values.add(v)

        assert list(values.values()) == ['b', 'b', 'b', 'a', 'a', 'c']

    def test_clear(self):
        """Test that clear empties the multiset"""
        values = RepeatedValues()
        values.add('x')
        values.clear()

        assert len(values) == 0
        assert list(values.values()) == []


class TestValueIterator:
    """Tests for the single-pass value sequence"""

    def test_is_single_pass(self):
        """Test that a second loop over the values sees nothing"""
        values = RepeatedValues()
        values.add('1')
        values.add('2')
        it = values.values()

        assert iter(it) is it
        assert list(it) == ['1', '2']
        assert list(it) == []

    def test_length_hint_tracks_remaining(self):
        """Test the length hint during consumption"""
        values = RepeatedValues()
        for v in ['a', 'a', 'b']:
            values.add(v)
        it = values.values()

        assert it.__length_hint__() == 3
        next(it)
        assert it.__length_hint__() == 2

    def test_snapshot_is_independent_of_later_adds(self):
        """Test that the iterator is not affected by changes to the multiset"""
        values = RepeatedValues()
        values.add('a')
        it = values.values()
        values.add('b')

        assert list(it) == ['a']


class TestReadGroups:
    """Tests for grouping a sorted stream"""

    def test_groups_consecutive_keys(self):
        """Test that each run of a key becomes one group"""
        lines = ['a\t1\n', 'a\t3\n', 'b\t2\n']
        groups = [(key, list(values)) for key, values in read_groups(lines)]

        assert groups == [('a', ['1', '3']), ('b', ['2'])]

    def test_empty_stream(self):
        """Test that no group is produced for empty input"""
        assert list(read_groups([])) == []

    def test_skips_empty_lines(self):
        """Test that blank lines are ignored"""
        lines = ['\n', 'a\t1\n', '\n', 'a\t2\n']
        groups = [(key, list(values)) for key, values in read_groups(lines)]

        assert groups == [('a', ['1', '2'])]

    def test_empty_lines_are_logged(self, caplog):
        """Test that every skipped line is reported with its line number"""
        with caplog.at_level(logging.WARNING, logger='pseudomr.grouping'):
            groups = [(key, list(values)) for key, values in read_groups(['\n', 'k\tv\n'])]

        assert groups == [('k', ['v'])]
        assert [r.getMessage() for r in caplog.records] == ['Skipping empty intermediate line 1']

    def test_duplicate_values_keep_their_multiplicity(self):
        """Test that repeated values come back as often as they were read"""
        lines = ['k\t5\n'] * 1000 + ['k\t6\n']
        ((key, values),) = list(read_groups(lines))

        result = list(values)
        assert key == 'k'
        assert result.count('5') == 1000
        assert result.count('6') == 1

    def test_value_with_tabs(self):
        """Test that only the first tab separates key and value"""
        ((key, values),) = list(read_groups(['g\tchr1\t10\n']))
        assert key == 'g'
        assert list(values) == ['chr1\t10']

    def test_line_without_tab_fails(self):
        """Test that malformed input stops the scan"""
        with pytest.raises(MalformedRecordError) as excinfo:
            list(read_groups(['a\t1\n', 'broken\n']))
        assert excinfo.value.line_number == 2

    def test_groups_are_streamed(self):
        """Test that a group is yielded before later lines are read"""
        read = []

        def lines():
            for line in ['a\t1\n', 'b\t1\n', 'c\t1\n']:
                read.append(line)
                yield line

        groups = read_groups(lines())
        key, _ = next(groups)

        assert key == 'a'
        assert len(read) == 2
