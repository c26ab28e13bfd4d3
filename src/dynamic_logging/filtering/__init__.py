"""
Sampling and variable filtering for dynamic log calls
"""

from .base import FilterResult, LogFilter
from .sampling_filter import SamplingFilter, should_proceed
from .variable_filter import VariableFilter, filter_variables

__all__ = [
    "FilterResult",
    "LogFilter",
    "SamplingFilter",
    "should_proceed",
    "VariableFilter",
    "filter_variables",
]
