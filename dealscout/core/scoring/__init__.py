# dealscout/core/scoring/__init__.py
from .engine import build_label, rank_candidates, score_candidate, score_signals
from .signals import parse_signals

__all__ = ["parse_signals", "score_signals", "score_candidate", "rank_candidates", "build_label"]
