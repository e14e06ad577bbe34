from odbfinder.domain.models import LocationRecord
from odbfinder.search.merge import merge_by_identity


def _rec(id_, code, lat=30.0, lon=31.0, city="X") -> LocationRecord:
    return LocationRecord(id=id_, odb_id=code, city_name=city, lat=lat, lon=lon)


def test_merge_priority_wins_on_conflict_and_keeps_pool_position():
    pool = [_rec(1, "A"), _rec(2, "B", lat=10.0), _rec(3, "C")]
    priority = [_rec(2, "B", lat=29.9)]

    merged = merge_by_identity(pool, priority)

    assert [r.id for r in merged] == [1, 2, 3]
    assert merged[1].lat == 29.9


def test_merge_appends_priority_only_records():
    merged = merge_by_identity([_rec(1, "A")], [_rec(5, "E"), _rec(4, "D")])
    assert [r.id for r in merged] == [1, 5, 4]


def test_merge_output_is_unique_by_id():
    pool = [_rec(1, "A"), _rec(2, "B"), _rec(1, "A", city="dup")]
    merged = merge_by_identity(pool, [_rec(2, "B"), _rec(3, "C")])
    ids = [r.id for r in merged]
    assert len(ids) == len(set(ids))
    assert set(ids) == {1, 2, 3}


def test_merge_never_deduplicates_pending_records():
    pending = LocationRecord(id=0, odb_id="NEW", city_name="X", lat=0, lon=0)
    assert pending.id is None
    merged = merge_by_identity([pending], [pending])
    assert len(merged) == 2


def test_merge_empty_inputs():
    assert merge_by_identity([], []) == []


def test_merge_is_repeatable_and_stable_when_fed_back():
    pool = [_rec(1, "A"), _rec(2, "B", lat=10.0), _rec(3, "C")]
    priority = [_rec(2, "B", lat=29.9, city="Fresh"), _rec(7, "G")]

    first = merge_by_identity(pool, priority)
    assert merge_by_identity(pool, priority) == first

    again = merge_by_identity(first, priority)
    assert [r.id for r in again] == [r.id for r in first] == [1, 2, 3, 7]
    assert (again[1].lat, again[1].city_name) == (29.9, "Fresh")
