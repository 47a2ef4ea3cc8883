import asyncio

import pytest

from medshare.backend.client import BackendError
from medshare.core.geo import UNKNOWN_DISTANCE_KM
from medshare.domain.models import Coordinate, MedicineFilters, NewMedicine
from medshare.repository.medicines import MedicineNotFound, MedicineRepository, NotListingOwner
from medshare.repository.memory import MemoryMedicineStore
from medshare.repository.ports import ListingQuery
from medshare.repository.samples import SAMPLE_ROWS

# Viewer standing at the first sample listing (downtown San Francisco).
VIEWER = Coordinate(lat=37.7749, lng=-122.4194)


class _FailingStore(MemoryMedicineStore):
    def __init__(self):
        super().__init__()
        self.calls = 0

    async def query(self, query: ListingQuery):
        self.calls += 1
        raise BackendError("connection refused")


def _row(id: str, *, lat=None, lng=None, created_at="2026-01-01T00:00:00+00:00", **extra):
    row = {
        "id": id,
        "name": f"Medicine {id}",
        "description": "Test listing",
        "image_url": "",
        "expiry": "2027-01-01",
        "is_free": True,
        "price": None,
        "locality": "Somewhere",
        "latitude": lat,
        "longitude": lng,
        "created_at": created_at,
        "user_id": "u1",
        "category": None,
    }
    row.update(extra)
    return row


def _repo(rows=SAMPLE_ROWS, **kwargs) -> MedicineRepository:
    return MedicineRepository(MemoryMedicineStore(rows), **kwargs)


def test_search_free_recent_end_to_end():
    repo = _repo()
    result = asyncio.run(repo.list_medicines("para", MedicineFilters(is_free=True, sort_by="recent")))

    assert result.error is None
    assert [m.id for m in result.data] == ["sample-1"]
    assert result.data[0].name == "Paracetamol"


def test_search_is_case_insensitive_and_ordered_by_recency():
    rows = [
        _row("a", name="Paracetamol 500", created_at="2026-01-01T00:00:00+00:00"),
        _row("b", name="PARACETAMOL syrup", created_at="2026-03-01T00:00:00+00:00"),
        _row("c", name="Paracetamol paid", is_free=False, price=3.5, created_at="2026-04-01T00:00:00+00:00"),
        _row("d", name="Aspirin", created_at="2026-05-01T00:00:00+00:00"),
        _row("e", name="Kids paracetamol", created_at="2026-02-01T00:00:00+00:00"),
    ]
    result = asyncio.run(_repo(rows).list_medicines("para", MedicineFilters(is_free=True, sort_by="recent")))

    assert [m.id for m in result.data] == ["b", "e", "a"]


def test_free_filter_returns_only_free_listings_without_price():
    result = asyncio.run(_repo().list_medicines("", MedicineFilters(is_free=True)))

    assert result.data
    assert all(m.is_free and m.price is None for m in result.data)


def test_paid_filter_returns_only_paid_listings():
    result = asyncio.run(_repo().list_medicines("", MedicineFilters(is_free=False)))

    assert {m.id for m in result.data} == {"sample-2", "sample-4", "sample-6"}
    assert all(m.price and m.price > 0 for m in result.data)


def test_category_filter():
    result = asyncio.run(_repo().list_medicines("", MedicineFilters(category="Pain Relief")))
    assert [m.id for m in result.data] == ["sample-1", "sample-3"]


def test_distance_sort_is_non_decreasing_with_unknown_last():
    rows = [
        _row("no-coords", created_at="2026-01-09T00:00:00+00:00"),
        _row("far", lat=37.8715, lng=-122.2730, created_at="2026-01-08T00:00:00+00:00"),
        _row("zero", lat=0.0, lng=-122.4, created_at="2026-01-07T00:00:00+00:00"),
        _row("near", lat=37.7751, lng=-122.4190, created_at="2026-01-06T00:00:00+00:00"),
        _row("mid", lat=37.7833, lng=-122.4167, created_at="2026-01-05T00:00:00+00:00"),
    ]
    filters = MedicineFilters(sort_by="distance", lat=VIEWER.lat, lng=VIEWER.lng)
    result = asyncio.run(_repo(rows).list_medicines("", filters))

    distances = [m.distance for m in result.data]
    assert distances == sorted(distances)
    assert [m.id for m in result.data] == ["near", "mid", "far", "no-coords", "zero"]
    assert distances[-2:] == [UNKNOWN_DISTANCE_KM, UNKNOWN_DISTANCE_KM]


def test_without_viewer_distance_sort_keeps_recency_and_no_distance():
    result = asyncio.run(_repo().list_medicines("", MedicineFilters(sort_by="distance")))

    assert [m.id for m in result.data] == [f"sample-{i}" for i in range(1, 7)]
    assert all(m.distance is None for m in result.data)


def test_expiry_sort_is_ascending_but_distances_still_attached():
    filters = MedicineFilters(sort_by="expiry", lat=VIEWER.lat, lng=VIEWER.lng)
    result = asyncio.run(_repo().list_medicines("", filters))

    assert [m.expiry for m in result.data] == sorted(m.expiry for m in result.data)
    assert all(m.distance is not None for m in result.data)


def test_expiry_sort_tolerates_mixed_free_text_formats():
    rows = [
        _row("month", expiry="December 2026", created_at="2026-01-03T00:00:00+00:00"),
        _row("us", expiry="10/15/2026", created_at="2026-01-02T00:00:00+00:00"),
        _row("iso", expiry="2026-05-20", created_at="2026-01-01T00:00:00+00:00"),
    ]
    result = asyncio.run(_repo(rows).list_medicines("", MedicineFilters(sort_by="expiry")))

    assert result.error is None
    assert [m.id for m in result.data] == ["us", "iso", "month"]


def test_out_of_range_viewer_is_treated_as_unknown():
    filters = MedicineFilters(sort_by="distance", lat=95.0, lng=10.0)
    result = asyncio.run(_repo().list_medicines("", filters))

    assert result.error is None
    assert [m.id for m in result.data] == [f"sample-{i}" for i in range(1, 7)]
    assert all(m.distance is None for m in result.data)


def test_search_text_is_not_trimmed():
    result = asyncio.run(_repo().list_medicines("para "))
    assert result.data == []
    assert result.error is None


def test_failure_returns_empty_result_with_error():
    store = _FailingStore()
    result = asyncio.run(MedicineRepository(store).list_medicines("para"))

    assert store.calls == 1
    assert result.data == []
    assert result.error == "connection refused"
    assert result.is_fallback is False


def test_failure_with_sample_fallback_is_flagged():
    repo = MedicineRepository(_FailingStore(), sample_fallback=True)
    result = asyncio.run(repo.list_medicines())

    assert result.is_fallback is True
    assert result.error == "connection refused"
    assert all(m.id.startswith("sample-") for m in result.data)


def test_malformed_rows_are_skipped_and_valid_rows_kept(caplog):
    rows = [
        _row("good-1", created_at="2026-01-03T00:00:00+00:00"),
        _row("bad", is_free=True, price=4.0, created_at="2026-01-02T00:00:00+00:00"),
        _row("good-2", created_at="2026-01-01T00:00:00+00:00"),
    ]
    repo = _repo(rows)

    with caplog.at_level("WARNING", logger="medshare.repository.medicines"):
        result = asyncio.run(repo.list_medicines())
    featured = asyncio.run(repo.get_featured_medicines(4))

    assert result.error is None
    assert [m.id for m in result.data] == ["good-1", "good-2"]
    assert [m.id for m in featured.data] == ["good-1", "good-2"]
    assert "bad" in caplog.text


def test_featured_returns_most_recent():
    result = asyncio.run(_repo().get_featured_medicines(4))
    assert [m.id for m in result.data] == ["sample-1", "sample-2", "sample-3", "sample-4"]


def test_featured_fallback_respects_limit():
    result = asyncio.run(MedicineRepository(_FailingStore(), sample_fallback=True).get_featured_medicines(2))
    assert len(result.data) == 2
    assert result.is_fallback


def test_get_medicine_and_not_found():
    repo = _repo()
    listing = asyncio.run(repo.get_medicine("sample-2", viewer=VIEWER))
    assert listing.name == "Amoxicillin"
    assert listing.distance is not None and listing.distance > 0

    with pytest.raises(MedicineNotFound) as excinfo:
        asyncio.run(repo.get_medicine("missing"))
    assert excinfo.value.medicine_id == "missing"


def test_add_then_delete_by_owner():
    repo = _repo([])
    new = NewMedicine(
        name="Loratadine",
        description="Non-drowsy antihistamine",
        image_url="memory://medicines/u9/1.png",
        expiry="2027-02-01",
        is_free=False,
        price=4.25,
        locality="Mission",
        user_id="u9",
        category="Allergy",
    )
    created = asyncio.run(repo.add_medicine(new))
    assert created.id
    assert created.created_at is not None

    with pytest.raises(NotListingOwner):
        asyncio.run(repo.delete_medicine(created.id, user_id="someone-else"))

    asyncio.run(repo.delete_medicine(created.id, user_id="u9"))
    with pytest.raises(MedicineNotFound):
        asyncio.run(repo.get_medicine(created.id))


def test_user_donations():
    donations = asyncio.run(_repo().get_user_donations("sample-user-1"))
    assert [m.id for m in donations] == ["sample-1", "sample-3"]


def test_save_is_idempotent_and_listed():
    repo = _repo()

    async def scenario():
        await repo.save_medicine("u1", "sample-3")
        await repo.save_medicine("u1", "sample-3")
        saved = await repo.get_user_saved_medicines("u1")
        flag = await repo.is_medicine_saved("u1", "sample-3")
        await repo.unsave_medicine("u1", "sample-3")
        return saved, flag, await repo.is_medicine_saved("u1", "sample-3")

    saved, before, after = asyncio.run(scenario())
    assert [m.id for m in saved] == ["sample-3"]
    assert saved[0].saved_at is not None
    assert before is True
    assert after is False


def test_save_propagates_other_backend_errors():
    class _Broken(MemoryMedicineStore):
        async def save(self, user_id, medicine_id):
            raise BackendError("permission denied", code="42501", status=403)

    with pytest.raises(BackendError):
        asyncio.run(MedicineRepository(_Broken()).save_medicine("u1", "sample-1"))


def test_sample_detail_stays_available_during_fallback():
    class _GetFails(_FailingStore):
        async def get(self, medicine_id):
            raise BackendError("connection refused")

    with_fallback = MedicineRepository(_GetFails(), sample_fallback=True)
    assert asyncio.run(with_fallback.get_medicine("sample-5")).name == "Omeprazole"

    with pytest.raises(BackendError):
        asyncio.run(with_fallback.get_medicine("real-id"))
    with pytest.raises(BackendError):
        asyncio.run(MedicineRepository(_GetFails()).get_medicine("sample-5"))


def test_listing_row_drops_computed_distance():
    listing = asyncio.run(_repo().get_medicine("sample-1", viewer=VIEWER))
    row = listing.to_row()
    assert "distance" not in row
    assert row["id"] == "sample-1"
    assert row["created_at"].startswith("2026-01-06")
