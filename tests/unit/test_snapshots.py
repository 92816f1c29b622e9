import pytest

from dealscout.core.errors import SnapshotUnreadable
from dealscout.watch.snapshots import SnapshotStore, diff_snapshots
from tests.utils import make_item, make_snapshot


def test_first_run_everything_is_new():
    items = [make_item("https://x.test/1"), make_item("https://x.test/2")]
    diff = diff_snapshots(None, items)
    assert [i.url for i in diff.new_items] == ["https://x.test/1", "https://x.test/2"]
    assert diff.changed_items == [] and diff.removed_urls == []
    assert diff.alert_count == 2


def test_new_changed_removed_are_disjoint():
    prior = make_snapshot(items=[make_item("https://x.test/1"), make_item("https://x.test/2"), make_item("https://x.test/3")])
    nxt = [
        make_item("https://x.test/1"),
        make_item("https://x.test/2", price=950_000.0),
        make_item("https://x.test/4"),
    ]
    diff = diff_snapshots(prior, nxt)

    new = {i.url for i in diff.new_items}
    changed = {i.url for i in diff.changed_items}
    removed = set(diff.removed_urls)
    assert new == {"https://x.test/4"}
    assert changed == {"https://x.test/2"}
    assert removed == {"https://x.test/3"}
    assert not (new & changed or new & removed or changed & removed)
    assert diff.summary() == "1 new, 1 changed, 1 removed"


def test_same_items_diff_empty():
    items = [make_item("https://x.test/1"), make_item("https://x.test/2", cap_rate=None)]
    diff = diff_snapshots(make_snapshot(items=items), items)
    assert diff.alert_count == 0
    assert diff.removed_urls == []


@pytest.mark.parametrize("field, value", [("score", 81.0), ("risk", 55.0), ("cap_rate", 0.072)])
def test_each_tracked_field_counts_as_change(field, value):
    prior = make_snapshot(items=[make_item()])
    diff = diff_snapshots(prior, [make_item(**{field: value})])
    assert len(diff.changed_items) == 1


def test_title_only_change_is_ignored():
    prior = make_snapshot(items=[make_item(title="Old name")])
    diff = diff_snapshots(prior, [make_item(title="New name")])
    assert diff.alert_count == 0


def test_store_round_trip_and_delete(memory_store):
    snapshots = SnapshotStore(memory_store)
    assert snapshots.load("tx-nnn") is None

    snapshots.save(make_snapshot(items=[make_item()]))
    loaded = snapshots.load("tx-nnn")
    assert loaded is not None and loaded.items[0].url == "https://x.test/1"
    assert memory_store.keys("snapshots/") == ["snapshots/tx-nnn"]

    assert snapshots.delete("tx-nnn") is True
    assert snapshots.load("tx-nnn") is None


def test_corrupt_file_raises_unreadable(file_store):
    snapshots = SnapshotStore(file_store)
    path = file_store.path_for("snapshots/tx-nnn")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotUnreadable):
        snapshots.load("tx-nnn")


def test_schema_mismatch_raises_unreadable(memory_store):
    memory_store.put("snapshots/tx-nnn", {"items": "nope"})
    with pytest.raises(SnapshotUnreadable):
        SnapshotStore(memory_store).load("tx-nnn")


def test_tracking_params_do_not_change_identity():
    prior = make_snapshot(items=[make_item("https://x.test/1?utm_source=a"), make_item("https://x.test/2")])
    nxt = [make_item("https://X.test/1?utm_source=b#top"), make_item("https://x.test/2")]
    diff = diff_snapshots(prior, nxt)
    assert diff.alert_count == 0
    assert diff.removed_urls == []


def test_removed_reports_the_stored_url():
    prior = make_snapshot(items=[make_item("https://x.test/3?ref=feed")])
    diff = diff_snapshots(prior, [])
    assert diff.removed_urls == ["https://x.test/3?ref=feed"]
