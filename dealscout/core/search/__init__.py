# dealscout/core/search/__init__.py
from .cascade import CascadeRequest, CascadeResult, CascadeStage, SearchCascade, stage_queries
from .provider import SearchProvider, SerperSearchProvider
from .urls import canonical_url, classify_url, is_detail_url, source_rank

__all__ = [
    "CascadeRequest",
    "CascadeResult",
    "CascadeStage",
    "SearchCascade",
    "SearchProvider",
    "SerperSearchProvider",
    "canonical_url",
    "classify_url",
    "is_detail_url",
    "source_rank",
    "stage_queries",
]
