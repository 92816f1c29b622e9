# tests/unit/test_scoring.py
"""
Scoring engine: factor bounds, determinism, label/rationale, ranking stability.
"""

import pytest

from dealscout.core.scoring.engine import rank_candidates, score_candidate, score_signals
from dealscout.core.scoring.signals import detect_state, match_tenant, parse_signals, wants_industrial
from dealscout.schemas.models import CandidateSignals, SearchHit
from tests.utils import DEFAULT_QUERY, make_hit

CAPS = {"relevance": 30, "tenant": 20, "lease": 15, "yield": 20, "url_quality": 15}

HITS = [
    make_hit(1),
    SearchHit(
        title="Industrial Outdoor Storage Yard - FedEx 20-year NNN",
        url="https://www.crexi.com/properties/555/ios-yard",
        snippet="Absolute net, corporate guarantee, 9.5% cap, $12.5M, Florida. NOI $1,187,500",
    ),
    SearchHit(title="Broker profile", url="https://www.crexi.com/profile/jane", snippet=""),
    SearchHit(title="", url="https://example.com/", snippet="lorem ipsum"),
    SearchHit(title="Warehouse for lease", url="https://www.loopnet.com/Listing/1-Main/1/", snippet="cap rate 99% NOI $9M price $1"),
]


@pytest.mark.parametrize("hit", HITS)
def test_factors_within_caps_and_total_in_range(hit):
    cand = score_candidate(hit, "industrial warehouse")
    for name, value in cand.factors.as_dict().items():
        assert isinstance(value, int)
        assert 0 <= value <= CAPS[name]
    assert cand.score == sum(cand.factors.as_dict().values())
    assert 0 <= cand.score <= 100


def test_scoring_is_deterministic():
    a = score_candidate(HITS[1], DEFAULT_QUERY)
    b = score_candidate(HITS[1], DEFAULT_QUERY)
    assert a == b


def test_default_hit_breakdown():
    cand = score_candidate(make_hit(1), DEFAULT_QUERY)
    assert cand.factors.as_dict() == {"relevance": 16, "tenant": 16, "lease": 15, "yield": 12, "url_quality": 15}
    assert cand.score == 74
    assert cand.signals.price == 1_500_000.0
    assert cand.signals.cap_rate == pytest.approx(0.07)
    assert cand.label == "Other · NNN · DOLLAR GENERAL · 7.0% Cap · $1.5M · TX"
    assert "Overall 74/100." in cand.rationale


def test_industrial_query_bonus_and_profile_penalty():
    ios = score_candidate(HITS[1], "industrial outdoor storage")
    assert ios.factors.relevance == 30
    assert ios.factors.yield_ == 20
    profile = score_candidate(HITS[2])
    assert profile.factors.url_quality == 5
    assert "profile" in profile.rationale


def test_factor_alias_serialization():
    cand = score_candidate(make_hit(1))
    dumped = cand.factors.model_dump(by_alias=True)
    assert "yield" in dumped and "yield_" not in dumped


def test_score_signals_works_on_typed_fields_only():
    f = score_signals(CandidateSignals(cap_rate=0.08, url_kind="detail", host="www.crexi.com"))
    assert f.yield_ == 16
    assert f.url_quality == 15
    assert f.tenant == 0


def test_signal_helpers():
    assert match_tenant("Leased to Chick Fil A") == "chick-fil-a"
    assert match_tenant("targeted marketing") is None
    assert detect_state("", "https://x.com/listing/fl/123") == "FL"
    assert wants_industrial("IOS yard Dallas")
    assert not wants_industrial(None)


def test_noi_not_read_as_price():
    s = parse_signals("NNN CVS", "NOI: $250,000. Price $4,000,000", "https://www.crexi.com/properties/1/cvs")
    assert s.noi == 250_000.0
    assert s.price == 4_000_000.0
    assert s.implied_cap_rate == pytest.approx(0.0625)


def test_rank_candidates_stable_on_ties():
    hits = [make_hit(1, title="A"), make_hit(2, title="B"), HITS[2], make_hit(3, title="C")]
    ranked = rank_candidates(hits, DEFAULT_QUERY)
    assert [c.title for c in ranked[:3]] == ["A", "B", "C"]
    assert ranked[-1].title == "Broker profile"
