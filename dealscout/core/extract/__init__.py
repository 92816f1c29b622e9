# dealscout/core/extract/__init__.py
from .engine import ExtractionEngine, outcome_error
from .fields import ListingFields, extract_fields, find_detail_link, is_bare_shell
from .pages import PageRenderer, PageSession

__all__ = [
    "ExtractionEngine",
    "ListingFields",
    "PageRenderer",
    "PageSession",
    "extract_fields",
    "find_detail_link",
    "is_bare_shell",
    "outcome_error",
]
