# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import make_hit, make_candidate, FakeSearchProvider
"""

from .utils import (
    EventRecorder,
    FakeMacroClient,
    FakePage,
    FakePageRenderer,
    FakeSearchProvider,
    make_candidate,
    make_hit,
    make_item,
    make_snapshot,
    make_watchlist,
)

__all__ = [
    "EventRecorder",
    "FakeMacroClient",
    "FakePage",
    "FakePageRenderer",
    "FakeSearchProvider",
    "make_candidate",
    "make_hit",
    "make_item",
    "make_snapshot",
    "make_watchlist",
]
