"""
Unit tests for scan_repository.

Covers:
  - resolve_breed_ids: case-insensitive catalog match, case variants, unknown labels
  - ordered_predictions: classifier order kept when the JSON column reorders keys
  - persist_scan: scan row + predicted-breed rows in one transaction, rollback on error
  - get_scan: unknown and malformed ids
  - set_helpful / set_flag: sign-in requirement, reason handling
"""

from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from cattlescan.models.scan import Breed, CattleScan, PredictedBreed
from cattlescan.services.errors import AuthRequiredError, PersistError, ScanNotFoundError
from cattlescan.services.geolocation import Coordinates
from cattlescan.services.predictions import top_prediction
from cattlescan.services.scan_repository import (
    get_scan,
    ordered_predictions,
    persist_scan,
    resolve_breed_ids,
    set_flag,
    set_helpful,
)

IMAGE_URL = "https://fake.supabase.co/storage/v1/object/public/cnb/images/1-abc.cow.jpg"
GIR_PREDICTIONS = {"Gir": 92.0, "Sahiwal": 5.0, "Red Sindhi": 3.0}


# ── helpers ──────────────────────────────────────────────────────────


def _seed_breeds(db, *names):
    breeds = [Breed(name=name, species="Cattle") for name in names]
    db.add_all(breeds)
    db.commit()
    return {b.name: b.id for b in breeds}


def _scan(db, **kwargs):
    values = {"image_url": IMAGE_URL, "predictions": GIR_PREDICTIONS}
    values.update(kwargs)
    return persist_scan(db, **values)


# ── resolve_breed_ids ────────────────────────────────────────────────


class TestResolveBreedIds:
    def test_case_insensitive_match(self, db_session):
        ids = _seed_breeds(db_session, "Gir", "Red Sindhi")
        resolved = resolve_breed_ids(db_session, ["gir", "RED SINDHI", "Unknown"])
        assert resolved == {"gir": ids["Gir"], "RED SINDHI": ids["Red Sindhi"]}

    def test_labels_differing_only_in_case_all_resolve(self, db_session):
        ids = _seed_breeds(db_session, "Gir")
        resolved = resolve_breed_ids(db_session, ["Gir", "GIR"])
        assert resolved == {"Gir": ids["Gir"], "GIR": ids["Gir"]}

    def test_empty_labels(self, db_session):
        assert resolve_breed_ids(db_session, []) == {}


# ── persist_scan ─────────────────────────────────────────────────────


class TestPersistScan:
    def test_writes_scan_and_prediction_rows(self, db_session):
        ids = _seed_breeds(db_session, "Gir", "Sahiwal")
        loc = Coordinates(latitude=21.17, longitude=72.83, accuracy=20.0)

        scan_id = _scan(db_session, location=loc, user_id="user-1", image_metadata={"format": "JPEG"})

        scan = db_session.get(CattleScan, scan_id)
        assert scan.image_url == IMAGE_URL
        assert scan.predictions == GIR_PREDICTIONS
        assert scan.location == {"latitude": 21.17, "longitude": 72.83, "accuracy": 20.0}
        assert scan.scanned_by_user_id == "user-1"
        assert scan.image_metadata == {"format": "JPEG"}
        assert scan.is_flagged is False
        assert scan.is_helpful is None

        rows = db_session.execute(
            select(PredictedBreed).where(PredictedBreed.scan_id == scan_id)
        ).scalars().all()
        assert {(r.label, r.percentage, r.breed_id) for r in rows} == {
            ("Gir", 92, ids["Gir"]),
            ("Sahiwal", 5, ids["Sahiwal"]),
            ("Red Sindhi", 3, None),
        }
        # Relationship follows the classifier output order.
        assert [p.label for p in scan.predicted_breeds] == ["Gir", "Sahiwal", "Red Sindhi"]

    def test_classifier_order_survives_reordered_json(self, db_session):
        scan_id = _scan(db_session, predictions={"Sahiwal": 50.0, "Gir": 50.0})
        scan = get_scan(db_session, scan_id)
        assert [(p.label, p.rank) for p in scan.predicted_breeds] == [("Sahiwal", 0), ("Gir", 1)]

        # JSONB hands keys back sorted by length, then bytes.
        scan.predictions = {"Gir": 50.0, "Sahiwal": 50.0}
        ordered = ordered_predictions(scan)
        assert list(ordered) == ["Sahiwal", "Gir"]
        assert top_prediction(ordered) == ("Sahiwal", 50.0)

    def test_rejects_missing_url(self, db_session):
        with pytest.raises(PersistError, match="without an uploaded image URL"):
            _scan(db_session, image_url="")

    def test_rejects_empty_predictions(self, db_session):
        with pytest.raises(PersistError, match="No scan results"):
            _scan(db_session, predictions={})

    def test_database_error_rolls_back(self, db_session):
        with patch.object(
            db_session,
            "commit",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(PersistError, match="OperationalError"):
                _scan(db_session)

        assert db_session.execute(select(CattleScan)).scalars().all() == []
        assert db_session.execute(select(PredictedBreed)).scalars().all() == []


# ── get_scan ─────────────────────────────────────────────────────────


class TestGetScan:
    def test_by_uuid_and_string(self, db_session):
        scan_id = _scan(db_session)
        assert get_scan(db_session, scan_id).id == scan_id
        assert get_scan(db_session, str(scan_id)).id == scan_id

    def test_unknown(self, db_session):
        with pytest.raises(ScanNotFoundError):
            get_scan(db_session, uuid.uuid4())

    def test_malformed(self, db_session):
        with pytest.raises(ScanNotFoundError):
            get_scan(db_session, "nope")

    def test_not_found_is_a_persist_error(self):
        assert issubclass(ScanNotFoundError, PersistError)


# ── review actions ───────────────────────────────────────────────────


class TestSetHelpful:
    def test_records_reviewer(self, db_session):
        scan_id = _scan(db_session)
        scan = set_helpful(db_session, scan_id, True, user_id="reviewer-1")
        assert scan.is_helpful is True
        assert scan.reviewed_by_user_id == "reviewer-1"

    @pytest.mark.parametrize("user_id", [None, "", "   "])
    def test_requires_user(self, db_session, user_id):
        scan_id = _scan(db_session)
        with pytest.raises(AuthRequiredError):
            set_helpful(db_session, scan_id, True, user_id=user_id)
        assert db_session.get(CattleScan, scan_id).is_helpful is None

    def test_auth_checked_before_lookup(self, db_session):
        with pytest.raises(AuthRequiredError):
            set_helpful(db_session, uuid.uuid4(), True, user_id=None)


class TestSetFlag:
    def test_flag_with_reason(self, db_session):
        scan_id = _scan(db_session)
        scan = set_flag(db_session, scan_id, True, "  wrong breed ", user_id="inspector")
        assert scan.is_flagged is True
        assert scan.flag_reason == "wrong breed"
        assert scan.flagged_by_user_id == "inspector"

    def test_blank_reason_stored_as_null(self, db_session):
        scan_id = _scan(db_session)
        scan = set_flag(db_session, scan_id, True, "   ", user_id="inspector")
        assert scan.is_flagged is True
        assert scan.flag_reason is None

    def test_unflag_clears_reason(self, db_session):
        scan_id = _scan(db_session)
        set_flag(db_session, scan_id, True, "blurry", user_id="inspector")
        scan = set_flag(db_session, scan_id, False, "still blurry", user_id="inspector")
        assert scan.is_flagged is False
        assert scan.flag_reason is None

    def test_requires_user(self, db_session):
        scan_id = _scan(db_session)
        with pytest.raises(AuthRequiredError):
            set_flag(db_session, scan_id, True, "x", user_id=None)

    def test_unknown_scan(self, db_session):
        with pytest.raises(ScanNotFoundError):
            set_flag(db_session, uuid.uuid4(), True, user_id="inspector")
