"""
Classic MapReduce word count example.
Counts the frequency of each word in the input text.
"""

import string


def map_function(line, reporter):
    """
    Map function: emit (word, 1) for each word in the line.

    Args:
        line: Text line
        reporter: Job counters

    Yields:
        (word, 1) tuples
    """
    reporter.increment('wordcount', 'input lines')
    # Remove punctuation and split into words
    words = line.translate(str.maketrans('', '', string.punctuation)).split()

    for word in words:
        reporter.increment('wordcount', 'words')
        yield (word.lower(), 1)


def reduce_function(key, values, reporter):
    """
    Reduce function: sum all counts for a word.

    Args:
        key: Word
        values: Counts (all 1s from map), as text
        reporter: Job counters

    Yields:
        (word, total_count) tuple
    """
    reporter.increment('wordcount', 'distinct words')
    yield (key, sum(int(v) for v in values))
