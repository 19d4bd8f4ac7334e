from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from database import build_engine
from domain.aggregates.profile_aggregate import ProfileAggregate
from domain.value_objects.section import Section
from exceptions import ConflictError, StorageError
from repositories.profile_repository import ProfileRepository


def test_get_missing_returns_none(repository):
    assert repository.get("nobody") is None


def test_set_field_creates_minimal_document(repository):
    version = repository.set_field("u1", "vehicles", [{"vehicle_id": "v1"}])

    stored = repository.get("u1")
    assert version == 1
    assert stored.version == 1
    assert list(stored.vehicles) == ["v1"]
    assert stored.favorite_spots == {}
    assert stored.history == {}
    assert stored.active_status == {}


def test_set_field_increments_version_and_stamps_updated_at(repository):
    repository.set_field("u1", "history", [], updated_at=datetime(2024, 1, 1))
    version = repository.set_field("u1", "history", [{"history_id": "h1"}], updated_at=datetime(2024, 1, 2))

    stored = repository.get("u1")
    assert version == 2
    assert stored.updated_at == datetime(2024, 1, 2)
    assert stored.created_at == datetime(2024, 1, 1)


def test_set_field_rejects_unknown_field(repository):
    with pytest.raises(ValueError):
        repository.set_field("u1", "garage", [])


def test_conditional_write_with_stale_version_conflicts(repository):
    repository.set_field("u1", "vehicles", [{"vehicle_id": "v1"}])
    repository.set_field("u1", "vehicles", [{"vehicle_id": "v2"}], expected_version=1)

    with pytest.raises(ConflictError):
        repository.set_field("u1", "vehicles", [], expected_version=1)

    assert list(repository.get("u1").vehicles) == ["v2"]


def test_create_only_write_conflicts_when_document_exists(repository):
    assert repository.set_field("u1", "activeStatus", [{"active_id": "a1"}], expected_version=0) == 1

    with pytest.raises(ConflictError):
        repository.set_field("u1", "activeStatus", [], expected_version=0)

    assert list(repository.get("u1").active_status) == ["a1"]


def test_stale_writer_does_not_overwrite_other_section(session_factory):
    first_session, second_session = session_factory(), session_factory()
    try:
        first = ProfileRepository(first_session)
        second = ProfileRepository(second_session)
        first.set_field("u1", "vehicles", [{"vehicle_id": "v1"}])

        stale = first.get("u1")
        second.set_field("u1", "history", [{"history_id": "h1"}], expected_version=stale.version)

        with pytest.raises(ConflictError):
            first.set_field("u1", "vehicles", [], expected_version=stale.version)

        current = second.get("u1")
        assert current.version == 2
        assert list(current.vehicles) == ["v1"]
        assert list(current.history) == ["h1"]
    finally:
        first_session.close()
        second_session.close()


def test_put_round_trips_all_sections(repository):
    aggregate = ProfileAggregate.empty("u1")
    aggregate.upsert_item(Section.VEHICLES, {"vehicle_id": "v1", "nickname": "Car", "electric": True})
    aggregate.upsert_item(Section.FAVORITE_SPOTS, {"spot_id": "s1", "location": {"lat": 1.5}})
    aggregate.upsert_item(Section.HISTORY, {"history_id": "h1", "duration": 30})

    assert repository.put(aggregate) == 1
    stored = repository.get("u1")

    assert stored.vehicles == aggregate.vehicles
    assert stored.favorite_spots == aggregate.favorite_spots
    assert stored.history == aggregate.history
    assert stored.active_status == {}

    stored.upsert_item(Section.ACTIVE_STATUS, {"active_id": "a1"})
    assert repository.put(stored, expected_version=stored.version) == 2
    assert repository.get("u1").counts()["activeStatus"] == 1


def test_delete_is_noop_when_absent(repository):
    repository.set_field("u1", "vehicles", [])

    assert repository.delete("u1") is True
    assert repository.get("u1") is None
    assert repository.delete("u1") is False


def test_storage_failure_is_wrapped(tmp_path):
    bare_engine = build_engine(f"sqlite:///{tmp_path / 'no_tables.db'}")
    session = sessionmaker(bind=bare_engine)()
    try:
        with pytest.raises(StorageError) as exc_info:
            ProfileRepository(session).get("u1")
        assert exc_info.value.details["operation"] == "get_by_id"
    finally:
        session.close()
        bare_engine.dispose()


def test_list_ids_and_count(repository):
    for user_id in ("u2", "u1", "u3"):
        repository.set_field(user_id, "vehicles", [])

    assert repository.count() == 3
    assert repository.list_ids() == ["u1", "u2", "u3"]
    assert repository.list_ids(limit=1, offset=1) == ["u2"]
    assert repository.exists("u2")


def test_get_by_id_returns_stored_record(repository):
    repository.set_field("u1", "favoriteSpots", [{"spot_id": "s1"}])

    record = repository.get_by_id("u1")

    assert record.user_id == "u1"
    assert record.favorite_spots == [{"spot_id": "s1"}]
    assert record.version == 1
    assert repository.get_by_id("u2") is None
