"""Result Aggregation Package

Grouped search and analysis results, their tabular export, and the aggregator
that turns them into highlight and zoom commands.
"""

from .result_models import (
    DatasetMatches, SearchResult, ResultGroup, ResultRow, HighlightCommand, GroupedResult
)
from .result_aggregator import ResultAggregator

__all__ = [
    'DatasetMatches', 'SearchResult', 'ResultGroup', 'ResultRow', 'HighlightCommand',
    'GroupedResult', 'ResultAggregator'
]
