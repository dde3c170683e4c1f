"""Tests for the chain and event stores."""

import pytest
from sqlalchemy import update

from event_provenance.database import Database
from event_provenance.database.models import EventRecordDB
from event_provenance.exceptions import (
    ChainAppendFailure,
    DuplicateEvent,
    MalformedRecord,
    StoreError,
    StoreTimeout,
)
from event_provenance.models.schemas import EventRecord, SignatureMetadata
from event_provenance.storage import EventStore, MAX_PAGE_SIZE


def _record(event_id, signed=False, previous_hash=None):
    return EventRecord(
        event_id=event_id,
        timestamp="2024-05-01T12:00:00.000Z",
        device_timestamp="2024-05-01T12:00:00.000Z",
        event_type="manual_capture",
        trigger_payload={"source": "test"},
        artifact_reference=f"/captures/{event_id}.jpg",
        artifact_encoding="image/jpeg",
        artifact_hash="a" * 64,
        previous_hash=previous_hash,
        signature="3045" if signed else None,
        signature_metadata=SignatureMetadata(
            algorithm="ECDSA-SHA256" if signed else None,
            key_id="sw:0123456789abcdef" if signed else None,
            trust="software" if signed else "absent",
        ),
        verified=signed,
    )


class TestChainStore:
    """Test compare-and-append chain storage."""

    @pytest.fixture(autouse=True)
    def events(self, event_store):
        for event_id in ["e1", "e2", "e3"]:
            event_store.put(_record(event_id))

    def test_positions_start_at_one(self, chain_store):
        """Test genesis gets position 1 and positions are contiguous."""
        assert chain_store.tail_hash() is None
        assert chain_store.append("e1", None, "h1") == 1
        assert chain_store.append("e2", "h1", "h2") == 2
        assert chain_store.append("e3", "h2", "h3") == 3

        assert [link.position for link in chain_store.read_ordered()] == [1, 2, 3]
        assert chain_store.tail_hash() == "h3"

    def test_stale_previous_hash_rejected(self, chain_store):
        """Test append against a stale tail fails and writes nothing."""
        chain_store.append("e1", None, "h1")
        chain_store.append("e2", "h1", "h2")

        with pytest.raises(ChainAppendFailure) as exc_info:
            chain_store.append("e3", "h1", "h3")

        assert exc_info.value.event_id == "e3"
        assert len(chain_store.read_ordered()) == 2

    def test_second_genesis_rejected(self, chain_store):
        """Test a null previous_hash only appends to an empty chain."""
        chain_store.append("e1", None, "h1")
        with pytest.raises(ChainAppendFailure):
            chain_store.append("e2", None, "h2")

    def test_duplicate_event_link_rejected(self, chain_store):
        """Test an event can be linked at most once."""
        chain_store.append("e1", None, "h1")
        with pytest.raises(ChainAppendFailure):
            chain_store.append("e1", "h1", "h2")
        assert len(chain_store.read_ordered()) == 1


class TestDatabase:
    """Test database wiring."""

    def test_in_memory_database_shared(self):
        """Test an in-memory database is visible across sessions."""
        db = Database("sqlite://")
        db.create_tables()
        try:
            store = EventStore(db)
            store.put(_record("e1"))
            assert store.get("e1") is not None
        finally:
            db.dispose()


class TestEventStore:
    """Test event record storage."""

    def test_put_and_get(self, event_store):
        """Test stored record reads back with all fields."""
        event_store.put(_record("e1", signed=True))

        record = event_store.get("e1")
        assert record.event_type == "manual_capture"
        assert record.trigger_payload == {"source": "test"}
        assert record.signature == "3045"
        assert record.signature_metadata.trust == "software"
        assert record.chain_position is None
        assert record.signed

    def test_get_unknown(self, event_store):
        """Test unknown id returns None."""
        assert event_store.get("missing") is None

    def test_duplicate_rejected(self, event_store):
        """Test event ids are unique."""
        event_store.put(_record("e1"))
        with pytest.raises(DuplicateEvent):
            event_store.put(_record("e1"))

    def test_list_newest_first_with_positions(self, event_store, chain_store):
        """Test listing order and chain position join."""
        for i, event_id in enumerate(["e1", "e2", "e3"]):
            event_store.put(_record(event_id))
            chain_store.append(event_id, f"h{i}" if i else None, f"h{i + 1}")

        records = event_store.list(limit=10)
        assert [r.event_id for r in records] == ["e3", "e2", "e1"]
        assert [r.chain_position for r in records] == [3, 2, 1]
        assert records[0].current_hash == "h3"

    def test_list_paging(self, event_store):
        """Test limit/offset and limit clamping."""
        for i in range(5):
            event_store.put(_record(f"e{i}"))

        assert [r.event_id for r in event_store.list(limit=2, offset=1)] == ["e3", "e2"]
        assert len(event_store.list(limit=MAX_PAGE_SIZE + 100)) == 5
        assert len(event_store.list(limit=0)) == 1

    def test_get_many(self, event_store):
        """Test batch lookup skips unknown ids."""
        event_store.put(_record("e1"))
        event_store.put(_record("e2"))

        found = event_store.get_many(["e1", "e2", "nope"])
        assert set(found) == {"e1", "e2"}
        assert event_store.get_many([]) == {}

    def test_stats(self, event_store, chain_store):
        """Test total, signed, verified and orphaned counts."""
        event_store.put(_record("e1", signed=True))
        event_store.put(_record("e2", signed=True))
        event_store.put(_record("e3"))
        chain_store.append("e1", None, "h1")
        chain_store.append("e2", "h1", "h2")

        stats = event_store.stats()
        assert stats.total == 3
        assert stats.signed == 2
        assert stats.verified == 2
        assert stats.orphaned == 1

    def test_missing_required_field_not_duplicate(self, event_store):
        """Test a rejected write that is not a duplicate raises StoreError."""
        incomplete = _record("e1").model_copy(update={"timestamp": None})

        with pytest.raises(StoreError) as exc_info:
            event_store.put(incomplete)

        assert not isinstance(exc_info.value, DuplicateEvent)
        assert event_store.get("e1") is None

    def test_locked_database_times_out(self, locked_db):
        """Test an operational failure on write raises StoreTimeout."""
        with pytest.raises(StoreTimeout):
            EventStore(locked_db).put(_record("e1"))


class TestMalformedRows:
    """Test reading event rows that no longer decode."""

    @pytest.fixture(autouse=True)
    def events(self, event_store):
        for event_id in ["e1", "e2", "e3"]:
            event_store.put(_record(event_id))

    @pytest.mark.parametrize("column,value", [
        ("trigger_payload", "not json"),
        ("trigger_payload", "[1, 2]"),
        ("signature_trust", "bogus"),
        ("time_source", "satellite"),
    ])
    def test_malformed_row(self, event_store, db, column, value):
        """Test a bad column surfaces as MalformedRecord, not a decode error."""
        with db.session() as session:
            session.execute(
                update(EventRecordDB).where(EventRecordDB.event_id == "e2").values(**{column: value})
            )

        with pytest.raises(MalformedRecord) as exc_info:
            event_store.get("e2")
        assert exc_info.value.event_id == "e2"

        found = event_store.get_many(["e1", "e2", "e3"])
        assert isinstance(found["e2"], MalformedRecord)
        assert found["e1"].event_id == "e1"

        assert [r.event_id for r in event_store.list()] == ["e3", "e1"]
