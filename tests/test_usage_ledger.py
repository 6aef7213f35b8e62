"""
Tests for the usage ledger and its trailing 7-day window
"""

import pytest

from tests.conftest import DAY_MS, NOW_MS, WEEK_MS
from vellume.models.usage_event import IMAGE_ACTIONS, UsageAction, UsageEvent
from vellume.services.usage_ledger import QUOTA_WINDOW_MS, UsageLedger


@pytest.fixture
def ledger(db_session, clock):
    return UsageLedger(db_session, clock)


class TestRecordUsage:
    """Test appending usage events"""

    def test_records_event_at_current_time(self, ledger, db_session, make_user):
        user = make_user()

        event = ledger.record_usage(user.id, UsageAction.IMAGE_GENERATED.value)

        stored = db_session.query(UsageEvent).filter(UsageEvent.id == event.id).one()
        assert stored.user_id == user.id
        assert stored.action == "image_generated"
        assert stored.created_at == NOW_MS

    def test_explicit_timestamp_is_kept(self, ledger, make_user):
        user = make_user()
        event = ledger.record_usage(user.id, "image_generated", timestamp=NOW_MS - DAY_MS)
        assert event.created_at == NOW_MS - DAY_MS

    def test_recorded_event_is_counted(self, ledger, make_user):
        user = make_user()
        ledger.record_usage(user.id, "cloud_image_generated")
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 1


class TestCountRecentUsage:
    """Test the window boundaries and filters"""

    def test_window_is_seven_days(self):
        assert QUOTA_WINDOW_MS == 604_800_000 == WEEK_MS

    def test_event_exactly_at_window_start_counts(self, ledger, make_user, add_usage):
        user = make_user()
        add_usage(user.id, created_at=NOW_MS - WEEK_MS)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 1

    def test_event_just_before_window_start_is_excluded(self, ledger, make_user, add_usage):
        user = make_user()
        add_usage(user.id, created_at=NOW_MS - WEEK_MS - 1)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 0

    def test_future_dated_events_are_excluded(self, ledger, make_user, add_usage):
        user = make_user()
        add_usage(user.id, created_at=NOW_MS + 1)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 0

    def test_other_users_are_not_counted(self, ledger, make_user, add_usage):
        user = make_user()
        other = make_user()
        add_usage(other.id, count=4)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 0

    def test_only_requested_actions_are_counted(self, ledger, make_user, add_usage):
        user = make_user()
        add_usage(user.id, count=2, action="image_generated")
        add_usage(user.id, count=1, action="cloud_image_generated")

        assert ledger.count_recent_usage(user.id, ["image_generated"]) == 2
        assert ledger.count_recent_usage(user.id, ["cloud_image_generated"]) == 1
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 3

    def test_empty_action_set_counts_nothing(self, ledger, make_user, add_usage):
        user = make_user()
        add_usage(user.id, count=2)
        assert ledger.count_recent_usage(user.id, []) == 0

    def test_window_slides_with_the_clock(self, ledger, clock, make_user, add_usage):
        user = make_user()
        add_usage(user.id, created_at=NOW_MS - DAY_MS)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 1

        clock.advance(WEEK_MS)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS) == 0

    def test_explicit_window_start(self, ledger, make_user, add_usage):
        user = make_user()
        add_usage(user.id, created_at=NOW_MS - 2 * DAY_MS)
        assert ledger.count_recent_usage(user.id, IMAGE_ACTIONS, window_start=NOW_MS - DAY_MS) == 0
        assert ledger.window_start() == NOW_MS - WEEK_MS
