# tests/integration/test_run_controller.py
"""
End-to-end runs over fake search/render backends: discovery with a blocked
page, score-only, nothing found, direct url, cancellation, result lookup.
"""

import asyncio

import pytest

from dealscout.core.errors import RunNotFound
from tests.utils import EventRecorder, FakePage, FakePageRenderer, FakeSearchProvider, detail_url

pytestmark = [pytest.mark.integration, pytest.mark.asyncio, pytest.mark.timeout(20)]


def recorded(controller, run_id="run1"):
    rec = EventRecorder()
    controller.channel.subscribe(run_id, rec)
    return rec


async def test_discovery_skips_blocked_page_and_keeps_going(controller_factory, three_hits, good_pages):
    renderer = FakePageRenderer(good_pages)
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=renderer)
    rec = recorded(controller)

    result = await controller.run_sync("  dollar general NNN Texas ")

    assert result.state == "finished-ok"
    assert result.plan == "Searching crexi.com for: dollar general NNN Texas"
    assert [d.url for d in result.deals] == [detail_url(1), detail_url(3)]
    assert result.deals[0].score == 74
    assert result.deals[0].cap_rate == pytest.approx(0.065)
    assert result.deals[0].underwrite.dscr is not None
    assert result.summary is not None and result.summary.candidate_count == 3

    kinds = rec.kinds()
    assert kinds[0] == "status"
    assert kinds[-1] == "completion"
    assert kinds.count("completion") == 1
    assert [e.source_id for e in rec.of("source_found")] == [1, 2, 3]

    progress = [(e.stage, e.url, e.reason) for e in rec.of("property_progress")]
    assert progress == [
        ("extracting", detail_url(1), None),
        ("deal", detail_url(1), None),
        ("extracting", detail_url(2), None),
        ("skipped", detail_url(2), "ExtractionBlocked"),
        ("extracting", detail_url(3), None),
        ("deal", detail_url(3), None),
    ]
    chunks = [e.text for e in rec.of("answer_chunk")]
    assert "Found a promising listing [1]: " in chunks
    assert "Found a promising listing [3]: " in chunks
    assert "The asking price is $4,200,000. " in chunks

    done = rec.of("completion")[0]
    assert done.ok is True and done.deal_count == 2

    ts = [e.t for e in rec.events]
    assert ts == sorted(ts)
    assert all(s.closed for s in renderer.sessions)
    assert controller.get_result("run1") == result
    assert controller.get_run("run1").state == "finished-ok"


async def test_max_candidates_caps_extractions(controller_factory, three_hits, good_pages):
    renderer = FakePageRenderer(good_pages)
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=renderer, max_candidates=1)
    result = await controller.run_sync("dollar general NNN Texas")
    assert len(renderer.sessions) == 1
    assert len(result.deals) == 1


async def test_score_only_never_opens_pages(controller_factory, three_hits, good_pages):
    renderer = FakePageRenderer(good_pages)
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=renderer)
    rec = recorded(controller)

    result = await controller.run_sync("dollar general NNN Texas", score_only=True)

    assert renderer.sessions == []
    assert result.deals == []
    assert result.summary.candidate_count == 3
    assert result.summary.score_buckets["60-79"] == 3
    assert "navigation" not in rec.kinds()
    assert rec.of("answer_chunk")[0].text.startswith("Scored 3 candidate listings")


async def test_no_candidates_is_still_a_successful_run(controller_factory):
    provider = FakeSearchProvider(default=[])
    controller = controller_factory(provider=provider)
    rec = recorded(controller)

    result = await controller.run_sync("unicorn portfolio in Antarctica")

    assert len(provider.queries) == 3
    assert result.state == "finished-ok"
    assert result.deals == [] and result.summary is None
    chunks = [e.text for e in rec.of("answer_chunk")]
    assert chunks[0] == "I couldn't find any matching commercial real estate listings. "
    assert rec.of("completion")[0].ok is True


async def test_all_pages_blocked_falls_back_to_ranking(controller_factory, three_hits):
    from tests.utils import BLOCKED_HTML

    renderer = FakePageRenderer({h.url: BLOCKED_HTML for h in three_hits})
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=renderer)
    rec = recorded(controller)

    result = await controller.run_sync("dollar general NNN Texas")

    assert result.state == "finished-ok"
    assert result.deals == []
    assert result.summary.candidate_count == 3
    assert [e.stage for e in rec.of("property_progress")].count("skipped") == 3
    assert any("ranked by score instead" in e.text for e in rec.of("answer_chunk"))


async def test_direct_url_skips_search(controller_factory, good_pages):
    provider = FakeSearchProvider()
    controller = controller_factory(provider=provider, renderer=FakePageRenderer(good_pages))
    rec = recorded(controller)

    result = await controller.run_sync(detail_url(1))

    assert provider.queries == []
    assert result.plan == f"Direct extraction from: {detail_url(1)}"
    assert len(result.deals) == 1
    assert result.deals[0].score is None
    assert result.deals[0].source == "www.crexi.com"
    assert "Found a promising listing: " in [e.text for e in rec.of("answer_chunk")]


async def test_direct_url_blocked(controller_factory, good_pages):
    controller = controller_factory(renderer=FakePageRenderer(good_pages))
    rec = recorded(controller)
    result = await controller.run_sync(detail_url(2))
    assert result.state == "finished-ok"
    assert result.deals == []
    assert rec.of("property_progress")[0].reason == "ExtractionBlocked"


async def test_start_run_result_lifecycle(controller_factory, three_hits, good_pages):
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=FakePageRenderer(good_pages))

    run_id = controller.start_run("dollar general NNN Texas")
    assert run_id == "run1"
    assert controller.get_run(run_id).state == "pending"
    assert controller.get_result(run_id) is None

    result = await controller.wait(run_id)
    assert len(result.deals) == 2
    assert controller.get_result(run_id) == result
    assert await controller.wait(run_id) == result
    assert controller.cancel(run_id) is False

    with pytest.raises(RunNotFound):
        controller.get_run("nope")
    with pytest.raises(RunNotFound):
        await controller.wait("nope")
    assert controller.get_result("nope") is None


async def test_stream_events_until_completion(controller_factory, three_hits, good_pages):
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=FakePageRenderer(good_pages))
    run_id = controller.start_run("dollar general NNN Texas")

    kinds = [e.kind async for e in controller.stream_events(run_id)]
    assert kinds[0] == "status"
    assert kinds[-1] == "completion"

    assert [e async for e in controller.stream_events(run_id)] == []


async def test_cancel_before_start(controller_factory, three_hits):
    provider = FakeSearchProvider(default=three_hits)
    controller = controller_factory(provider=provider)
    rec = recorded(controller)

    run_id = controller.start_run("dollar general NNN Texas")
    assert controller.cancel(run_id, "client went away") is True
    result = await controller.wait(run_id)

    assert result.state == "finished-failed"
    assert result.message == "cancelled: client went away"
    assert provider.queries == []
    done = rec.of("completion")[0]
    assert done.ok is False and done.message == "cancelled: client went away"
    assert controller.get_result(run_id).state == "finished-failed"


async def test_cancel_during_extraction(controller_factory, three_hits, good_pages):
    pages = dict(good_pages)
    pages[three_hits[0].url] = FakePage(html=good_pages[three_hits[0].url], goto_delay_s=0.3)
    renderer = FakePageRenderer(pages)
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=renderer)

    run_id = controller.start_run("dollar general NNN Texas")
    await asyncio.sleep(0.1)
    controller.cancel(run_id, "stop")
    result = await controller.wait(run_id)

    assert result.state == "finished-failed"
    assert result.deals == []
    assert len(renderer.sessions) == 1


async def test_client_disconnect_cancels_when_enabled(controller_factory, three_hits, good_pages):
    pages = dict(good_pages)
    pages[three_hits[0].url] = FakePage(html=good_pages[three_hits[0].url], goto_delay_s=0.3)
    controller = controller_factory(
        provider=FakeSearchProvider(default=three_hits),
        renderer=FakePageRenderer(pages),
        cancel_on_disconnect=True,
    )
    run_id = controller.start_run("dollar general NNN Texas")

    stream = controller.stream_events(run_id)
    while (await stream.__anext__()).kind != "navigation":
        pass
    await stream.aclose()

    result = await controller.wait(run_id)
    assert result.message == "cancelled: client disconnected"


async def test_internal_failure_finishes_failed(controller_factory, monkeypatch):
    controller = controller_factory()
    rec = recorded(controller)

    async def explode(*args, **kwargs):
        raise RuntimeError("cascade exploded")

    monkeypatch.setattr(controller.cascade, "run", explode)
    result = await controller.run_sync("anything")

    assert result.state == "finished-failed"
    assert result.message == "internal error: RuntimeError: cascade exploded"
    assert rec.kinds()[-1] == "completion"


async def test_parser_errors_skip_pages_without_failing_the_run(controller_factory, three_hits, good_pages, monkeypatch):
    from dealscout.core.extract import engine as engine_module

    def explode(html, *, selectors=None):
        raise KeyError("price")

    monkeypatch.setattr(engine_module, "extract_fields", explode)
    controller = controller_factory(provider=FakeSearchProvider(default=three_hits), renderer=FakePageRenderer(good_pages))
    rec = recorded(controller)

    result = await controller.run_sync("dollar general NNN Texas")

    assert result.state == "finished-ok"
    assert result.deals == []
    assert result.summary.candidate_count == 3
    reasons = {e.url: e.reason for e in rec.of("property_progress") if e.stage == "skipped"}
    assert reasons[detail_url(1)] == "ExtractionError"
    assert reasons[detail_url(2)] == "ExtractionBlocked"


async def test_result_lookup_with_invalid_key_is_none(controller_factory):
    controller = controller_factory()
    assert controller.get_result("no such run") is None
    with pytest.raises(RunNotFound):
        await controller.wait("a:b")
