"""Tests for read-side queries."""

from datetime import timedelta
from decimal import Decimal

import pytest

from timelock.models.query import LockBoxQuery
from timelock.queries import format_duration


class TestFormatDuration:
    """Tests for countdown rendering."""

    @pytest.mark.parametrize("delta,text", [
        (timedelta(0), "ready"),
        (timedelta(seconds=-3), "ready"),
        (timedelta(seconds=5), "5s"),
        (timedelta(minutes=2), "2m"),
        (timedelta(days=2, hours=3, minutes=4, seconds=5), "2d 3h 4m 5s"),
    ])
    def test_rendering(self, delta, text):
        """Test representative durations."""
        assert format_duration(delta) == text


class TestViewLockBoxes:
    """Tests for the filtered lock box listing."""

    @pytest.fixture
    def populated(self, ledger, make_account, clock):
        account = make_account(balance="1000.00")
        ledger.create_lock_box(account, "100", clock.now() + timedelta(seconds=5))
        ledger.create_lock_box(account, "200", clock.now() + timedelta(hours=1))
        clock.advance(seconds=5)
        ledger.scan_account(account)
        return account

    def test_both_filters(self, queries, populated):
        """Test that both flags list every box."""
        result = queries.view_lock_boxes(LockBoxQuery(username="alice"))

        assert result.success
        assert result.result_count == 2
        assert [r["state"] for r in result.results] == ["released", "active"]
        assert result.summary["locked_total"] == Decimal("200")
        assert result.summary["released_total"] == Decimal("100")
        assert "active & released" in result.query_description

    def test_active_only(self, queries, populated):
        """Test the active filter and its countdown."""
        result = queries.view_lock_boxes(
            LockBoxQuery(username="alice", show_released=False)
        )
        assert result.result_count == 1
        row = result.results[0]
        assert row["state"] == "active"
        assert row["time_remaining"] == timedelta(minutes=59, seconds=55)
        assert row["time_remaining_text"] == "59m 55s"

    def test_released_only(self, queries, populated):
        """Test the released filter."""
        result = queries.view_lock_boxes(
            LockBoxQuery(username="alice", show_active=False)
        )
        assert [r["amount"] for r in result.results] == [Decimal("100")]
        assert result.results[0]["time_remaining_text"] == "ready"

    def test_no_filters(self, queries, populated):
        """Test that clearing both flags shows nothing."""
        result = queries.view_lock_boxes(
            LockBoxQuery(username="alice", show_active=False, show_released=False)
        )
        assert result.success
        assert not result.data_found
        assert result.results == []
        assert "no lock boxes" in result.query_description

    def test_listing_does_not_release(self, queries, make_account, ledger, clock):
        """Test that a matured box is reported but left active."""
        account = make_account()
        box = ledger.create_lock_box(account, "10", clock.now() + timedelta(seconds=1))
        clock.advance(seconds=2)

        row = queries.view_lock_boxes(LockBoxQuery(username="alice")).results[0]

        assert row["matured"] is True
        assert box.is_active

    def test_unknown_user(self, queries):
        """Test the failure result for an unknown user."""
        result = queries.view_lock_boxes(LockBoxQuery(username="nobody"))
        assert not result.success
        assert result.error_message


class TestAdminQueries:
    """Tests for user listing and the release log."""

    def test_list_users(self, queries, make_account, ledger, clock):
        """Test totals across users."""
        alice = make_account("alice", balance="100.00")
        make_account("bob", balance="50.00", is_active=False)
        ledger.create_lock_box(alice, "40", clock.now() + timedelta(days=1))

        result = queries.list_users()

        assert [r["username"] for r in result.results] == ["alice", "bob"]
        assert result.summary["active_users"] == 1
        assert result.summary["total_balance"] == Decimal("110.00")
        assert result.summary["total_locked"] == Decimal("40")

    def test_release_log_filter(self, queries, make_account, ledger, clock):
        """Test the release log, whole and per user."""
        alice = make_account("alice")
        bob = make_account("bob")
        ledger.create_lock_box(alice, "1", clock.now() + timedelta(seconds=1))
        ledger.create_lock_box(bob, "2", clock.now() + timedelta(seconds=1))
        clock.advance(seconds=1)
        ledger.scan_all()

        everything = queries.view_release_log()
        only_bob = queries.view_release_log("bob")

        assert everything.result_count == 2
        assert everything.summary["total_released"] == Decimal("3")
        assert [r["username"] for r in only_bob.results] == ["bob"]

    def test_empty_release_log(self, queries):
        """Test the empty log result."""
        result = queries.view_release_log()
        assert result.success
        assert not result.data_found
