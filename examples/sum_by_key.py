"""
Sum numeric fields per key.
Each input line is 'key,number'; the output holds one 'key<TAB>sum' line per key.
"""


def map_function(line, reporter):
    fields = line.split(',')
    if len(fields) != 2:
        reporter.increment('sum_by_key', 'invalid lines')
        return
    yield (fields[0], fields[1])


def reduce_function(key, values, reporter):
    yield (key, sum(int(v) for v in values))
