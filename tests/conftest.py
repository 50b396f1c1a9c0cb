"""
Pytest configuration and shared fixtures
"""

import os
import shutil
import tempfile

import pytest

from pseudomr.engine import PseudoMapReduce


@pytest.fixture
def temp_dir():
    """Create temporary directory for test files"""
    dirpath = tempfile.mkdtemp()
    yield dirpath
    shutil.rmtree(dirpath)


@pytest.fixture
def scratch_dir(temp_dir):
    """Scratch directory for artifacts, separate from inputs and outputs"""
    path = os.path.join(temp_dir, 'scratch')
    os.makedirs(path)
    return path


@pytest.fixture
def sample_text():
    """Sample text for testing"""
    return """The quick brown fox jumps over the lazy dog.
The dog was really lazy.
The fox was very quick and brown.
Quick brown foxes are amazing animals.
Lazy dogs sleep all day."""


@pytest.fixture
def sample_input_file(temp_dir, sample_text):
    """Create a sample input file for testing"""
    filepath = os.path.join(temp_dir, 'input.txt')
    with open(filepath, 'w') as f:
        f.write(sample_text)
    return filepath


@pytest.fixture
def examples_dir():
    """Directory holding the example job files"""
    return os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'examples')


requires_sort = pytest.mark.skipif(shutil.which('sort') is None, reason="sort command not available")


class CommaSplitJob(PseudoMapReduce):
    """Maps 'a,1' to (a, 1) and sums the values of each key"""

    def map(self, value, output, reporter):
        reporter.increment('test', 'map calls')
        key, _, number = value.partition(',')
        output.append(f"{key}\t{number}")

    def reduce(self, key, values, output, reporter):
        reporter.increment('test', 'reduce calls')
        output.append(f"{key}\t{sum(int(v) for v in values)}")


class CollectingJob(PseudoMapReduce):
    """Records the values each reduce call sees, keyed by group"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.seen = {}

    def map(self, value, output, reporter):
        key, _, rest = value.partition(',')
        output.append(f"{key}\t{rest}")

    def reduce(self, key, values, output, reporter):
        self.seen[key] = list(values)
        output.append(f"{key}\t{len(self.seen[key])}")
