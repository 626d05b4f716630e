import json

import pytest

from review_tracker.core import storage
from review_tracker.core.config import Settings
from review_tracker.core.models import Company, Review, ReviewSnapshot


def test_missing_companies_file_is_seeded(tmp_path):
    store = storage.JsonFileStore(tmp_path)

    companies = store.get_companies()

    assert [company.id for company in companies] == ["ica-maxi-kalmar", "sample-restaurant"]
    assert (tmp_path / "companies.json").exists()
    assert (tmp_path / "reviews").is_dir()


def test_companies_round_trip(tmp_path):
    store = storage.JsonFileStore(tmp_path)
    store.save_companies([Company(id="acme", name="Acme", place_id="pid", is_active=False)])

    reloaded = storage.JsonFileStore(tmp_path).get_companies()

    assert len(reloaded) == 1
    assert reloaded[0].place_id == "pid"
    assert reloaded[0].is_active is False


def test_snapshot_round_trip(tmp_path):
    store = storage.JsonFileStore(tmp_path)
    snapshot = ReviewSnapshot(
        company_id="acme",
        company_name="Acme",
        rating=4.2,
        user_ratings_total=10,
        reviews=[Review(id="r1", company_id="acme", author_name="Ann", rating=5, text="Good")],
    )

    store.save_snapshot(snapshot)
    loaded = store.get_snapshot("acme")

    assert loaded.rating == 4.2
    assert loaded.reviews[0].text == "Good"
    assert loaded.last_updated == snapshot.last_updated
    assert not list((tmp_path / "reviews").glob("*.tmp"))


def test_unknown_snapshot_is_none(tmp_path):
    assert storage.JsonFileStore(tmp_path).get_snapshot("nobody") is None


def test_corrupt_snapshot_raises_storage_error(tmp_path):
    store = storage.JsonFileStore(tmp_path)
    (tmp_path / "reviews" / "acme.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(storage.StorageError):
        store.get_snapshot("acme")


def test_get_all_snapshots_skips_unreadable_files(tmp_path, caplog):
    store = storage.JsonFileStore(tmp_path)
    store.save_snapshot(ReviewSnapshot(company_id="acme", company_name="Acme", rating=4.0))
    (tmp_path / "reviews" / "broken.json").write_text("{", encoding="utf-8")

    with caplog.at_level("WARNING"):
        snapshots = store.get_all_snapshots()

    assert [snapshot.company_id for snapshot in snapshots] == ["acme"]
    assert "broken.json" in " ".join(caplog.messages)


def test_companies_file_must_be_a_list(tmp_path):
    (tmp_path / "companies.json").write_text(json.dumps({"id": "acme"}), encoding="utf-8")

    with pytest.raises(storage.StorageError):
        storage.JsonFileStore(tmp_path).get_companies()


def test_create_store_defaults_to_json(tmp_path):
    store = storage.create_store(Settings(data_dir=tmp_path / "data"))

    assert isinstance(store, storage.JsonFileStore)
    assert (tmp_path / "data" / "reviews").is_dir()


def test_malformed_snapshot_fields_raise_storage_error(tmp_path):
    store = storage.JsonFileStore(tmp_path)
    (tmp_path / "reviews" / "acme.json").write_text(json.dumps({"rating": 4.0, "reviews": 7}), encoding="utf-8")

    with pytest.raises(storage.StorageError):
        store.get_snapshot("acme")
    assert store.get_all_snapshots() == []
