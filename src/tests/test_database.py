"""Tests for session management and datetime helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from bakery_costing.models import Ingredient, PriceHistoryEntry
from bakery_costing.services import database
from bakery_costing.services.database import reset_database, session_scope
from bakery_costing.utils.datetime_utils import as_utc, utc_now


class TestSessionScope:
    def test_commits_on_success(self, test_db):
        with session_scope() as session:
            session.add(Ingredient(name="Salt", base_unit="g"))

        with session_scope() as session:
            assert session.query(Ingredient).count() == 1

    def test_rolls_back_on_error(self, test_db):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(Ingredient(name="Salt", base_unit="g"))
                session.flush()
                raise RuntimeError("abort")

        with session_scope() as session:
            assert session.query(Ingredient).count() == 0


class TestResetDatabase:
    def test_requires_confirmation(self):
        with pytest.raises(ValueError):
            reset_database()

    def test_drops_and_recreates(self, test_db, monkeypatch):
        engine = test_db.kw["bind"]
        monkeypatch.setattr(database, "get_engine", lambda force_recreate=False: engine)
        with session_scope() as session:
            session.add(Ingredient(name="Salt", base_unit="g"))

        reset_database(confirm=True)

        with session_scope() as session:
            assert session.query(Ingredient).count() == 0


class TestAsUtc:
    def test_naive_is_assumed_utc(self):
        assert as_utc(datetime(2024, 1, 1, 12)).tzinfo == timezone.utc

    def test_aware_is_converted(self):
        plus_three = timezone(timedelta(hours=3))
        assert as_utc(datetime(2024, 1, 1, 12, tzinfo=plus_three)).hour == 9

    def test_none(self):
        assert as_utc(None) is None

    def test_stored_timestamps_compare_with_now(self, test_db):
        with session_scope() as session:
            session.add(
                PriceHistoryEntry(
                    entity_type="ingredient", entity_id=1, new_price=1, change_amount=1
                )
            )

        with session_scope() as session:
            entry = session.query(PriceHistoryEntry).one()
            assert as_utc(entry.changed_at) <= utc_now()
