"""
Tests for the store layer against an in-memory SQLite database.
"""

from datetime import date

import pytest

from fieldlog.core.errors import Conflict, NotFound, ValidationFailed
from fieldlog.db import models
from fieldlog.schemas.activity import ActivityHourIn, ActivityIn
from fieldlog.schemas.engineer import EngineerCreate, EngineerUpdate
from fieldlog.services import store
from fieldlog.services.changes import get_change_feed

DAY = date(2024, 3, 4)


@pytest.fixture
def alice(db):
    return store.create_engineer(db, EngineerCreate(employee_id="E1", full_name="Alice", email="alice@acme.com"))


@pytest.fixture
def bob(db):
    return store.create_engineer(db, EngineerCreate(employee_id="E2", full_name="Bob", email="bob@acme.com"))


def hours_payload(categories, **hours):
    return [ActivityHourIn(service_category_id=categories[name], hours=value) for name, value in hours.items()]


# =============================================================================
# Engineers
# =============================================================================


class TestEngineers:
    def test_defaults(self, alice):
        assert alice.role == "engineer"
        assert alice.weekly_hour_requirement == 40
        assert alice.is_active

    def test_duplicate_code_or_email_conflicts(self, db, alice):
        with pytest.raises(Conflict):
            store.create_engineer(db, EngineerCreate(employee_id="E1", full_name="X", email="x@acme.com"))
        with pytest.raises(Conflict):
            store.create_engineer(db, EngineerCreate(employee_id="E9", full_name="X", email="alice@acme.com"))

    def test_update_and_list_ordered_by_name(self, db, alice, bob):
        store.update_engineer(db, bob.id, EngineerUpdate(full_name="Aaron", weekly_hour_requirement=32))
        names = [e.full_name for e in store.list_engineers(db)]
        assert names == ["Aaron", "Alice"]
        assert store.get_engineer(db, bob.id).weekly_hour_requirement == 32

    def test_list_filters_roles_and_active(self, db, alice, bob):
        store.update_engineer(db, bob.id, EngineerUpdate(is_active=False))
        store.create_engineer(db, EngineerCreate(employee_id="A1", full_name="Admin", email="boss@acme.com", role="admin"))
        assert {e.employee_id for e in store.list_engineers(db, roles=["engineer"])} == {"E1", "E2"}
        assert {e.employee_id for e in store.list_engineers(db, roles=["engineer"], active_only=True)} == {"E1"}

    def test_delete_removes_activities(self, db, alice, categories):
        store.upsert_activity(db, alice.id, DAY, ActivityIn(activity_hours=hours_payload(categories, Repair=2)))
        store.delete_engineer(db, alice.id)
        assert db.query(models.DailyActivity).count() == 0
        assert db.query(models.ActivityHour).count() == 0
        with pytest.raises(NotFound):
            store.get_engineer(db, alice.id)

    def test_claim_profile_links_account(self, db, alice):
        user = models.User(email="alice@acme.com", hashed_password="x")
        db.add(user)
        db.commit()
        claimed = store.claim_engineer_profile(db, user.id, "alice@acme.com")
        assert claimed.id == alice.id
        assert store.get_engineer_for_user(db, user.id).employee_id == "E1"

    @pytest.mark.parametrize("role", ["admin", "limited_admin"])
    def test_admin_profiles_are_never_claimed_or_auto_linked(self, db, role):
        user = models.User(email="boss@acme.com", hashed_password="x")
        db.add(user)
        db.commit()
        boss = store.create_engineer(db, EngineerCreate(employee_id="B1", full_name="Boss", email="boss@acme.com", role=role))
        assert store.get_engineer_for_user(db, user.id) is None
        with pytest.raises(Conflict):
            store.claim_engineer_profile(db, user.id, "boss@acme.com")
        assert store.get_engineer(db, boss.id).role == role
        assert store.get_engineer_for_user(db, user.id) is None

        linked = store.link_engineer_account(db, boss.id)
        assert store.get_engineer_for_user(db, user.id).id == linked.id

    def test_claim_profile_without_match(self, db):
        assert store.claim_engineer_profile(db, 99, "nobody@acme.com") is None


# =============================================================================
# Activities
# =============================================================================


class TestUpsertActivity:
    def test_total_is_sum_and_zero_rows_are_dropped(self, db, alice, categories):
        payload = ActivityIn(
            customer_name="Acme",
            activity_hours=hours_payload(categories, Installation=3, Travel=2, Repair=0),
        )
        record = store.upsert_activity(db, alice.id, DAY, payload)
        assert record.total_hours == 5
        assert sorted((h.category_name, h.hours) for h in record.activity_hours) == [("Installation", 3), ("Travel", 2)]
        assert db.query(models.ActivityHour).count() == 2

    def test_second_save_overwrites_same_date(self, db, alice, categories):
        store.upsert_activity(db, alice.id, DAY, ActivityIn(notes="first", activity_hours=hours_payload(categories, Repair=4)))
        record = store.upsert_activity(db, alice.id, DAY, ActivityIn(notes="second", activity_hours=hours_payload(categories, Travel=1)))
        assert record.notes == "second"
        assert record.version == 2
        assert [(h.category_name, h.hours) for h in record.activity_hours] == [("Travel", 1)]
        assert db.query(models.DailyActivity).count() == 1

    def test_zero_total_rejected_before_write(self, db, alice, categories):
        with pytest.raises(ValidationFailed):
            store.upsert_activity(db, alice.id, DAY, ActivityIn(activity_hours=hours_payload(categories, Repair=0)))
        assert db.query(models.DailyActivity).count() == 0

    def test_duplicate_category_rejected(self, db, alice, categories):
        payload = ActivityIn(activity_hours=[
            ActivityHourIn(service_category_id=categories["Repair"], hours=1),
            ActivityHourIn(service_category_id=categories["Repair"], hours=2),
        ])
        with pytest.raises(ValidationFailed):
            store.upsert_activity(db, alice.id, DAY, payload)

    def test_unknown_category_rolls_back(self, db, alice, categories):
        payload = ActivityIn(activity_hours=[ActivityHourIn(service_category_id=9999, hours=1)])
        with pytest.raises(ValidationFailed):
            store.upsert_activity(db, alice.id, DAY, payload)
        assert db.query(models.DailyActivity).count() == 0

    def test_stale_expected_version_conflicts(self, db, alice, categories):
        first = store.upsert_activity(db, alice.id, DAY, ActivityIn(activity_hours=hours_payload(categories, Repair=4)))
        store.upsert_activity(db, alice.id, DAY, ActivityIn(
            expected_version=first.version, activity_hours=hours_payload(categories, Repair=5)))
        with pytest.raises(Conflict):
            store.upsert_activity(db, alice.id, DAY, ActivityIn(
                expected_version=first.version, activity_hours=hours_payload(categories, Repair=6)))
        assert store.get_activity_for_date(db, alice.id, DAY).total_hours == 5

    def test_expected_version_zero_means_new(self, db, alice, categories):
        store.upsert_activity(db, alice.id, DAY, ActivityIn(expected_version=0, activity_hours=hours_payload(categories, Repair=1)))
        with pytest.raises(Conflict):
            store.upsert_activity(db, alice.id, DAY, ActivityIn(expected_version=0, activity_hours=hours_payload(categories, Repair=1)))

    def test_save_publishes_change(self, db, alice, categories):
        received = []
        with get_change_feed().subscribe("daily_activities", received.append):
            record = store.upsert_activity(db, alice.id, DAY, ActivityIn(activity_hours=hours_payload(categories, Repair=1)))
        assert [(e.action, e.row_id) for e in received] == [("upsert", record.id)]


class TestReplaceActivityHours:
    def test_refetch_matches_nonzero_entries(self, db, alice, categories):
        record = store.upsert_activity(db, alice.id, DAY, ActivityIn(activity_hours=hours_payload(categories, Repair=4)))
        store.replace_activity_hours(db, record.id, hours_payload(categories, Installation=2.5, Travel=0, Training=1))
        db.expire_all()
        refetched = store.get_activity(db, record.id)
        assert sorted((h.category_name, h.hours) for h in refetched.activity_hours) == [("Installation", 2.5), ("Training", 1)]
        assert refetched.total_hours == 3.5

    def test_missing_activity(self, db, categories):
        with pytest.raises(NotFound):
            store.replace_activity_hours(db, 404, hours_payload(categories, Repair=1))


class TestListActivities:
    def test_newest_date_first_and_filters(self, db, alice, bob, categories):
        for engineer, day in [(alice, date(2024, 3, 1)), (bob, date(2024, 3, 5)), (alice, date(2024, 3, 3))]:
            store.upsert_activity(db, engineer.id, day, ActivityIn(activity_hours=hours_payload(categories, Repair=1)))
        assert [a.activity_date for a in store.list_activities(db)] == [date(2024, 3, 5), date(2024, 3, 3), date(2024, 3, 1)]
        assert [a.engineer.employee_id for a in store.list_activities(db, engineer_id=alice.id)] == ["E1", "E1"]
        assert [a.engineer.employee_id for a in store.list_activities(db, activity_date=date(2024, 3, 5))] == ["E2"]

    def test_delete_checks_owner(self, db, alice, bob, categories):
        record = store.upsert_activity(db, alice.id, DAY, ActivityIn(activity_hours=hours_payload(categories, Repair=1)))
        with pytest.raises(NotFound):
            store.delete_activity(db, record.id, engineer_id=bob.id)
        store.delete_activity(db, record.id, engineer_id=alice.id)
        assert store.list_activities(db) == []


# =============================================================================
# Notifications
# =============================================================================


class TestNotifications:
    def test_visibility_and_order(self, db, alice, bob):
        store.send_notification(db, "Team meeting", "all", None, None)
        store.send_notification(db, "For Alice", "specific", alice.id, None)
        store.send_notification(db, "For Bob", "specific", bob.id, None)
        alice_view = [n.message for n in store.list_notifications_for(db, alice.id)]
        assert alice_view == ["For Alice", "Team meeting"]

    def test_capped_at_limit(self, db, alice):
        for i in range(25):
            store.send_notification(db, f"msg {i}", "all", None, None)
        visible = store.list_notifications_for(db, alice.id, limit=20)
        assert len(visible) == 20
        assert visible[0].message == "msg 24"

    def test_read_state_is_per_recipient(self, db, alice, bob):
        note = store.send_notification(db, "Hello all", "all", None, None)
        store.mark_read(db, alice.id, note.id)
        assert store.list_notifications_for(db, alice.id)[0].is_read
        assert not store.list_notifications_for(db, bob.id)[0].is_read

    def test_mark_read_is_idempotent(self, db, alice):
        note = store.send_notification(db, "Hello", "all", None, None)
        store.mark_read(db, alice.id, note.id)
        store.mark_read(db, alice.id, note.id)
        assert db.query(models.NotificationRead).count() == 1

    def test_cannot_mark_someone_elses(self, db, alice, bob):
        note = store.send_notification(db, "For Bob", "specific", bob.id, None)
        with pytest.raises(NotFound):
            store.mark_read(db, alice.id, note.id)

    def test_mark_all_read(self, db, alice, bob):
        store.send_notification(db, "one", "all", None, None)
        store.send_notification(db, "two", "specific", alice.id, None)
        store.send_notification(db, "three", "specific", bob.id, None)
        assert store.mark_all_read(db, alice.id) == 2
        assert store.mark_all_read(db, alice.id) == 0
        assert all(n.is_read for n in store.list_notifications_for(db, alice.id))
        assert not any(n.is_read for n in store.list_notifications_for(db, bob.id))

    def test_unknown_recipient(self, db):
        with pytest.raises(NotFound):
            store.send_notification(db, "hi", "specific", 404, None)
