import pytest

from domain.aggregates.profile_aggregate import ProfileAggregate
from domain.value_objects.section import Section
from exceptions import ConflictError, ResourceNotFoundError, ValidationError
from repositories.profile_repository import ProfileRepository
from services.profile_service import ProfileService, summarize


def _item(section: Section, item_id: str, **fields):
    item = {section.id_field: item_id}
    item.update(fields)
    return item


class InterleavingRepository(ProfileRepository):
    """Runs a competing write right after the service's read"""

    def __init__(self, db, competing_write):
        super().__init__(db)
        self.competing_write = competing_write

    def get(self, user_id):
        aggregate = super().get(user_id)
        if self.competing_write:
            competing_write, self.competing_write = self.competing_write, None
            competing_write()
        return aggregate


def test_add_vehicle_to_new_user(service):
    service.add_vehicle("u1", {"vehicle_id": "v1", "nickname": "Car"})

    aggregate = service.get_aggregate("u1")
    assert list(aggregate.vehicles) == ["v1"]
    assert aggregate.vehicles["v1"]["nickname"] == "Car"
    assert aggregate.favorite_spots == {}
    assert aggregate.history == {}
    assert aggregate.active_status == {}


def test_update_vehicle_changes_fields(service):
    service.add_vehicle("u1", {"vehicle_id": "v1", "nickname": "Car"})

    updated = service.update_vehicle("u1", "v1", {"vehicle_id": "v1", "nickname": "Car2"})

    assert updated["nickname"] == "Car2"
    assert service.get_aggregate("u1").vehicles["v1"]["nickname"] == "Car2"


def test_update_unknown_vehicle_is_not_found(service):
    service.add_vehicle("u1", {"vehicle_id": "v1"})

    with pytest.raises(ResourceNotFoundError):
        service.update_vehicle("u1", "v9", {"vehicle_id": "v9"})


def test_update_without_document_is_not_found(service):
    with pytest.raises(ResourceNotFoundError):
        service.update_history("ghost", "h1", {"history_id": "h1"})


@pytest.mark.parametrize("section", list(Section))
def test_adding_same_id_twice_keeps_one_item(service, section):
    service.add_item("u1", section, _item(section, "x", rev=1))
    service.add_item("u1", section, _item(section, "x", rev=2))

    items = service.get_aggregate("u1").section(section)
    assert list(items) == ["x"]
    assert items["x"]["rev"] == 2


@pytest.mark.parametrize("section", list(Section))
def test_add_then_delete_removes_item(service, section):
    service.add_item("u1", section, _item(section, "x"))
    service.delete_item("u1", section, "x")

    assert "x" not in service.get_aggregate("u1").section(section)
    with pytest.raises(ResourceNotFoundError):
        service.delete_item("u1", section, "x")


def test_timestamps_move_forward_and_created_at_is_kept(service):
    service.add_favorite_spot("u1", {"spot_id": "s1", "name": "Home"})
    before = service.get_aggregate("u1")
    item_created = before.favorite_spots["s1"]["created_at"]

    service.update_favorite_spot("u1", "s1", {"spot_id": "s1", "name": "Office"})
    after_update = service.get_aggregate("u1")
    service.delete_favorite_spot("u1", "s1")
    after_delete = service.get_aggregate("u1")

    assert after_update.updated_at >= before.updated_at
    assert after_delete.updated_at >= after_update.updated_at
    assert after_update.created_at == before.created_at == after_delete.created_at
    assert after_update.favorite_spots["s1"]["created_at"] == item_created


def test_numeric_item_id_is_stored_unchanged(service):
    service.add_vehicle("u1", {"vehicle_id": 7, "nickname": "numeric id"})

    vehicles = service.get_aggregate("u1").vehicles
    assert list(vehicles) == ["7"]
    assert vehicles["7"]["vehicle_id"] == 7
    assert vehicles["7"]["nickname"] == "numeric id"


def test_update_requires_exact_id_match(service):
    service.add_history("u1", {"history_id": 7, "note": "numeric id"})

    with pytest.raises(ValidationError):
        service.update_history("u1", "7", {"history_id": 7, "note": "changed"})

    history = service.get_aggregate("u1").history
    assert history["7"]["history_id"] == 7
    assert history["7"]["note"] == "numeric id"


@pytest.mark.parametrize("item", [None, {}, {"nickname": "no id"}, {"vehicle_id": ""}])
def test_add_rejects_invalid_items(service, item):
    with pytest.raises(ValidationError):
        service.add_vehicle("u1", item)
    assert service.store.get("u1") is None


def test_update_rejects_mismatched_ids_before_reading(service):
    with pytest.raises(ValidationError) as exc_info:
        service.update_active_status("ghost", "a1", {"active_id": "a2"})
    assert exc_info.value.field == "active_id"


def test_delete_rejects_blank_id(service):
    with pytest.raises(ValidationError):
        service.delete_vehicle("u1", " ")


def test_blank_user_id_is_rejected(service):
    with pytest.raises(ValidationError):
        service.get_aggregate("")
    with pytest.raises(ValidationError):
        service.add_vehicle("  ", {"vehicle_id": "v1"})


def test_get_and_load_for_missing_user(service):
    empty = service.get_aggregate("ghost")
    assert empty.total_items() == 0
    assert not empty.is_persisted

    with pytest.raises(ResourceNotFoundError) as exc_info:
        service.load_aggregate("ghost")
    assert "ghost" in exc_info.value.message


def test_sections_are_written_independently(service):
    service.add_vehicle("u1", {"vehicle_id": "v1"})
    service.add_active_status("u1", {"active_id": "a1", "online": True})
    service.delete_vehicle("u1", "v1")

    aggregate = service.get_aggregate("u1")
    assert aggregate.vehicles == {}
    assert aggregate.active_status["a1"]["online"] is True


def test_concurrent_write_is_detected_not_lost(db_session, session_factory):
    service = ProfileService(ProfileRepository(db_session))
    service.add_vehicle("u1", {"vehicle_id": "v1"})

    other_session = session_factory()
    try:
        other = ProfileService(ProfileRepository(other_session))
        racing = ProfileService(InterleavingRepository(
            session_factory(),
            lambda: other.add_history("u1", {"history_id": "h1"})
        ))
        with pytest.raises(ConflictError):
            racing.add_vehicle("u1", {"vehicle_id": "v2"})
        racing.store.db.close()
    finally:
        other_session.close()

    aggregate = service.get_aggregate("u1")
    assert list(aggregate.vehicles) == ["v1"]
    assert list(aggregate.history) == ["h1"]


def test_racing_first_writes_conflict(session_factory):
    other_session = session_factory()
    racing_session = session_factory()
    try:
        other = ProfileService(ProfileRepository(other_session))
        racing = ProfileService(InterleavingRepository(
            racing_session,
            lambda: other.add_vehicle("u1", {"vehicle_id": "v1"})
        ))
        with pytest.raises(ConflictError):
            racing.add_history("u1", {"history_id": "h1"})
    finally:
        other_session.close()
        racing_session.close()


def test_delete_aggregate(service):
    service.add_vehicle("u1", {"vehicle_id": "v1"})

    assert service.delete_aggregate("u1") is True
    assert service.delete_aggregate("u1") is False
    assert service.get_aggregate("u1").total_items() == 0


def test_summarize_counts_sections():
    aggregate = ProfileAggregate.empty("u1")
    aggregate.upsert_item(Section.VEHICLES, {"vehicle_id": "v1"})
    aggregate.upsert_item(Section.VEHICLES, {"vehicle_id": "v2"})

    assert summarize(aggregate) == {
        "user_id": "u1",
        "vehicles": 2,
        "favoriteSpots": 0,
        "history": 0,
        "activeStatus": 0,
    }
