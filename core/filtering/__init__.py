"""Response reliability filtering for language-model backends."""

from .reliability_filter import ReliabilityFilter, reliability_filter, strip_code_fence

__all__ = ["ReliabilityFilter", "reliability_filter", "strip_code_fence"]
