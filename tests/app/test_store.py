"""Tests for BlobStore and RepertoryStore."""

import json

import pytest
from conftest import NOW_MS

from louveai.app.store import (
    DRAFT_KEY,
    REPERTORIES_KEY,
    BlobStore,
    Direction,
    RepertoryStore,
)
from louveai.core.history import recent_titles
from louveai.errors import ImmutableRepertory, IncompleteSchedule, NotFound
from louveai.models import RepertoryStatus


def _stored_blob(repertory_changes=None, song_changes=None):
    song = {
        "id": "s1",
        "title": "Porque Ele Vive",
        "artist": "Harpa Cristã",
        "category": "harpa",
        "ministration": {"text": "Reflexão", "direction": "Gratidão"},
    }
    song.update(song_changes or {})
    repertory = {"id": "r1", "songs": [song], "status": "approved", "created_at": NOW_MS}
    repertory.update(repertory_changes or {})
    return json.dumps({"version": 1, "repertories": [repertory]})


class TestBlobStore:
    """Tests for the SQLite slot store."""

    def test_read_missing_slot(self, blob_store):
        assert blob_store.read("missing") is None

    def test_write_then_read(self, blob_store):
        blob_store.write("k", "v1")
        blob_store.write("k", "v2")

        assert blob_store.read("k") == "v2"

    def test_delete(self, blob_store):
        blob_store.write("k", "v")

        assert blob_store.delete("k") is True
        assert blob_store.delete("k") is False
        assert blob_store.read("k") is None

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "slots.db"
        with BlobStore(path) as first:
            first.write("k", "v")

        with BlobStore(path) as second:
            assert second.read("k") == "v"


class TestDraftOperations:
    """Tests for create_draft, replace_entry and reorder."""

    def test_create_draft(self, store, make_entry):
        songs = [make_entry(title="A")]

        draft = store.create_draft(songs)

        assert draft.status == RepertoryStatus.DRAFT
        assert draft.created_at == NOW_MS
        assert draft.songs == songs
        assert draft.id != store.create_draft(songs).id

    def test_replace_entry_preserves_position(self, store, make_entry):
        """[A, B, C] replacing B by D yields [A, D, C]."""
        a, b, c, d = (make_entry(title=t) for t in "ABCD")
        draft = store.create_draft([a, b, c])

        updated = store.replace_entry(draft, b.id, d)

        assert updated.songs == [a, d, c]
        assert [s.id for s in updated.songs] == [a.id, d.id, c.id]
        assert draft.songs == [a, b, c]

    def test_replace_entry_unknown_id(self, store, make_entry):
        draft = store.create_draft([make_entry()])

        with pytest.raises(NotFound):
            store.replace_entry(draft, "missing", make_entry())

    def test_reorder_down(self, store, make_entry):
        """[A, B] moving index 0 down yields [B, A]."""
        a, b = make_entry(title="A"), make_entry(title="B")
        draft = store.create_draft([a, b])

        assert store.reorder(draft, 0, Direction.DOWN).songs == [b, a]

    def test_reorder_up_at_top_is_noop(self, store, make_entry):
        a, b = make_entry(title="A"), make_entry(title="B")
        draft = store.create_draft([a, b])

        assert store.reorder(draft, 0, Direction.UP).songs == [a, b]

    def test_reorder_down_at_bottom_is_noop(self, store, make_entry):
        a, b = make_entry(title="A"), make_entry(title="B")
        draft = store.create_draft([a, b])

        assert store.reorder(draft, 1, "down").songs == [a, b]

    def test_reorder_out_of_range_index_is_noop(self, store, make_entry):
        draft = store.create_draft([make_entry()])

        assert store.reorder(draft, 5, Direction.UP).songs == draft.songs

    def test_approved_repertory_is_immutable(self, store, make_entry):
        a = make_entry()
        approved = store.finalize(store.create_draft([a, make_entry()]), "Culto", "2026-11-01")

        with pytest.raises(ImmutableRepertory):
            store.reorder(approved, 0, Direction.DOWN)
        with pytest.raises(ImmutableRepertory):
            store.replace_entry(approved, a.id, make_entry())


class TestFinalize:
    """Tests for finalize()."""

    def test_approves_and_prepends(self, store, make_entry):
        first = store.finalize(store.create_draft([make_entry()]), "Culto 1", "2026-11-01")
        second = store.finalize(store.create_draft([make_entry()]), "Culto 2", "2026-11-08")

        assert second.status == RepertoryStatus.APPROVED
        assert second.service_name == "Culto 2"
        assert [r.id for r in store.repertories] == [second.id, first.id]

    @pytest.mark.parametrize("name,date", [("Culto", ""), ("", "2026-11-01"), ("  ", "  ")])
    def test_incomplete_schedule_leaves_collection_unchanged(self, store, make_entry, name, date):
        store.finalize(store.create_draft([make_entry()]), "Culto", "2026-11-01")
        before = [r.to_dict() for r in store.repertories]

        with pytest.raises(IncompleteSchedule):
            store.finalize(store.create_draft([make_entry()]), name, date)

        assert [r.to_dict() for r in store.repertories] == before

    def test_edit_overwrites_in_place(self, store, make_entry):
        """Finalizing a re-edited repertory keeps its id and position."""
        older = store.finalize(store.create_draft([make_entry(title="A")]), "Culto 1", "2026-11-01")
        store.finalize(store.create_draft([make_entry(title="B")]), "Culto 2", "2026-11-08")

        draft = store.open_for_edit(older.id)
        assert draft.status == RepertoryStatus.DRAFT
        draft = store.replace_entry(draft, draft.songs[0].id, make_entry(title="C"))
        store.finalize(draft, "Culto 1 (revisado)", "2026-11-01")

        assert len(store.repertories) == 2
        assert store.repertories[1].id == older.id
        assert store.repertories[1].service_name == "Culto 1 (revisado)"
        assert store.repertories[1].songs[0].title == "C"

    def test_finalize_clears_saved_draft(self, store, blob_store, make_entry):
        draft = store.create_draft([make_entry()])
        store.save_draft(draft)

        store.finalize(draft, "Culto", "2026-11-01")

        assert blob_store.read(DRAFT_KEY) is None

    def test_refinalizing_approved_repertory_is_rejected(self, store, make_entry):
        """An approved repertory only changes through open_for_edit()."""
        approved = store.finalize(store.create_draft([make_entry()]), "Culto", "2026-11-01")
        before = [r.to_dict() for r in store.repertories]

        with pytest.raises(ImmutableRepertory):
            store.finalize(approved, "Outro culto", "2026-12-25")

        assert [r.to_dict() for r in store.repertories] == before
        assert RepertoryStore(store.blobs).get(approved.id).service_name == "Culto"


class TestDeleteAndEdit:
    """Tests for delete() and open_for_edit()."""

    def test_delete(self, store, make_entry):
        approved = store.finalize(store.create_draft([make_entry()]), "Culto", "2026-11-01")

        assert store.delete(approved.id) is True
        assert store.repertories == []

    def test_delete_absent_is_noop(self, store):
        assert store.delete("missing") is False

    def test_open_for_edit_unknown_id(self, store):
        with pytest.raises(NotFound):
            store.open_for_edit("missing")

    def test_open_for_edit_does_not_touch_stored_copy(self, store, make_entry):
        approved = store.finalize(store.create_draft([make_entry()]), "Culto", "2026-11-01")

        store.open_for_edit(approved.id)

        assert store.get(approved.id).status == RepertoryStatus.APPROVED


class TestPersistence:
    """Tests for loading and saving the collection."""

    def test_roundtrip_through_blob_store(self, blob_store, catalog, store, make_entry):
        """Reloading yields the same ordered repertories."""
        store.finalize(store.create_draft([make_entry(title="A")]), "Culto 1", "2026-11-01")
        store.finalize(
            store.create_draft([make_entry(title="B"), make_entry(title="C", category="harpa")]),
            "Culto 2",
            "2026-11-08",
        )

        reloaded = RepertoryStore(blob_store, catalog=catalog)

        assert [r.to_dict() for r in reloaded.repertories] == [r.to_dict() for r in store.repertories]

    def test_blob_is_versioned(self, blob_store, store, make_entry):
        store.finalize(store.create_draft([make_entry()]), "Culto", "2026-11-01")

        data = json.loads(blob_store.read(REPERTORIES_KEY))

        assert data["version"] == 1
        assert len(data["repertories"]) == 1

    @pytest.mark.parametrize(
        "blob",
        ["not json", "[]", '{"version": 99, "repertories": []}', '{"version": 1, "repertories": [{}]}'],
    )
    def test_malformed_blob_is_empty_collection(self, blob_store, catalog, blob):
        blob_store.write(REPERTORIES_KEY, blob)

        assert RepertoryStore(blob_store, catalog=catalog).repertories == []

    def test_well_formed_stored_blob_loads(self, blob_store, catalog):
        blob_store.write(REPERTORIES_KEY, _stored_blob())

        repertories = RepertoryStore(blob_store, catalog=catalog).repertories

        assert [r.id for r in repertories] == ["r1"]
        assert repertories[0].songs[0].category == catalog.get("harpa")

    @pytest.mark.parametrize(
        "repertory_changes,song_changes",
        [
            ({"created_at": "yesterday"}, {}),
            ({"status": "archived"}, {}),
            ({"songs": "Alvo"}, {}),
            ({}, {"title": None}),
            ({}, {"artist": 7}),
            ({}, {"ministration": "Louvor"}),
            ({}, {"ministration": {"text": "Reflexão"}}),
        ],
    )
    def test_wrongly_typed_fields_make_blob_malformed(
        self, blob_store, catalog, repertory_changes, song_changes
    ):
        """Bad field types are rejected at load time instead of failing later."""
        blob_store.write(REPERTORIES_KEY, _stored_blob(repertory_changes, song_changes))

        store = RepertoryStore(blob_store, catalog=catalog)

        assert store.repertories == []
        assert recent_titles(store.repertories, NOW_MS) == frozenset()

    def test_draft_slot_roundtrip(self, store, make_entry):
        draft = store.create_draft([make_entry(title="A")])

        store.save_draft(draft)

        assert store.load_draft() == draft

    def test_save_none_clears_draft(self, store, make_entry):
        store.save_draft(store.create_draft([make_entry()]))

        store.save_draft(None)

        assert store.load_draft() is None

    def test_malformed_draft_is_discarded(self, store, blob_store):
        blob_store.write(DRAFT_KEY, "{oops")

        assert store.load_draft() is None

    def test_wrongly_typed_draft_is_discarded(self, store, blob_store):
        draft = json.loads(_stored_blob({"created_at": "ontem"}))["repertories"][0]
        blob_store.write(DRAFT_KEY, json.dumps(draft))

        assert store.load_draft() is None
