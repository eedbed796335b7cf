"""
Tests for the ledger service: lock box creation, release and scanning.

Every scenario runs on a SimulatedClock, so maturity is reached by
advancing time instead of sleeping.
"""

import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from timelock.errors import (
    AlreadyReleased,
    InsufficientFunds,
    InvalidAmount,
    LockBoxNotFound,
    LockBoxNotMatured,
)
from timelock.ledger import to_amount
from timelock.models.audit import AuditEventType


def total_value(account) -> Decimal:
    """Spendable balance plus everything still locked."""
    return account.balance + account.locked_total


class TestToAmount:
    """Tests for amount normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("300", Decimal("300")),
        ("12.50", Decimal("12.50")),
        (" 7.1 ", Decimal("7.1")),
        (5, Decimal("5")),
        ("1.000", Decimal("1.00")),
    ])
    def test_valid_amounts(self, raw, expected):
        """Test accepted inputs."""
        assert to_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "-1", "abc", "1.005", "NaN", "Infinity", ""])
    def test_invalid_amounts(self, raw):
        """Test rejected inputs."""
        with pytest.raises(InvalidAmount):
            to_amount(raw)


class TestCreateLockBox:
    """Tests for locking funds."""

    def test_create_debits_balance(self, ledger, make_account, clock):
        """Test that locking moves funds out of the balance into one new box."""
        account = make_account(balance="1000.00")
        box = ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))

        assert account.balance == Decimal("700.00")
        assert account.lock_boxes == [box]
        assert box.is_active
        assert box.amount == Decimal("300")
        assert box.owner == "alice"
        assert box.created_at == clock.now()

    def test_sub_second_unlock_rounds_up(self, ledger, make_account, clock):
        """Test that a fractional unlock time never matures early."""
        account = make_account()
        box = ledger.create_lock_box(
            account, "10", clock.now() + timedelta(seconds=5, milliseconds=500)
        )

        assert box.unlock_at == clock.now() + timedelta(seconds=6)
        clock.advance(seconds=5)
        assert not box.maturity_check(clock.now())
        clock.advance(seconds=1)
        assert box.maturity_check(clock.now())

    def test_whole_balance_can_be_locked(self, ledger, make_account, clock):
        """Test that amount == balance is allowed."""
        account = make_account(balance="100.00")
        ledger.create_lock_box(account, "100", clock.now() + timedelta(hours=1))
        assert account.balance == Decimal("0.00")

    def test_over_balance_is_rejected(self, ledger, make_account, clock, audit_storage):
        """Test balance 100, create 150: rejected, nothing changes."""
        account = make_account(balance="100.00")

        with pytest.raises(InvalidAmount):
            ledger.create_lock_box(account, "150", clock.now() + timedelta(seconds=5))

        assert account.balance == Decimal("100.00")
        assert account.lock_boxes == []
        assert audit_storage.events == []

    def test_over_balance_reports_insufficient_funds(self, ledger, make_account, clock):
        """Test the specific error carries both amounts."""
        account = make_account(balance="100.00")
        with pytest.raises(InsufficientFunds) as exc_info:
            ledger.create_lock_box(account, "150", clock.now() + timedelta(seconds=5))
        assert exc_info.value.available == Decimal("100.00")
        assert exc_info.value.requested == Decimal("150")

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_non_positive_is_rejected(self, ledger, make_account, clock, amount):
        """Test that zero and negative amounts leave state unchanged."""
        account = make_account(balance="100.00")
        with pytest.raises(InvalidAmount):
            ledger.create_lock_box(account, amount, clock.now() + timedelta(seconds=5))
        assert account.balance == Decimal("100.00")
        assert account.lock_boxes == []

    def test_rejected_create_does_not_consume_an_id(self, ledger, make_account, clock, context):
        """Test that failed creations leave the id sequence alone."""
        account = make_account(balance="100.00")
        with pytest.raises(InvalidAmount):
            ledger.create_lock_box(account, "500", clock.now() + timedelta(seconds=5))
        assert context.sequence.peek == 1

    def test_ids_are_unique_across_accounts(self, ledger, make_account, clock):
        """Test ids increase monotonically over every account."""
        alice = make_account("alice")
        bob = make_account("bob")
        unlock = clock.now() + timedelta(minutes=1)

        ids = [
            ledger.create_lock_box(alice, "1", unlock).id,
            ledger.create_lock_box(bob, "1", unlock).id,
            ledger.create_lock_box(alice, "1", unlock).id,
        ]
        assert ids == [1, 2, 3]

    def test_create_is_audited(self, ledger, make_account, clock, audit_storage):
        """Test that creation emits exactly one CREATE_LOCKBOX event."""
        account = make_account()
        box = ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))

        assert [e.event_type for e in audit_storage.events] == [AuditEventType.CREATE_LOCKBOX]
        assert audit_storage.events[0].lock_box_id == box.id
        assert audit_storage.events[0].amount == Decimal("300")


class TestReleaseScan:
    """Tests for the automatic release scan."""

    def test_scenario_lock_and_release(self, ledger, make_account, clock, context, audit_storage):
        """Test balance 1000, lock 300 for 5s, advance 5s: balance back to 1000."""
        account = make_account(balance="1000.00")
        box = ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))
        assert account.balance == Decimal("700.00")

        assert ledger.scan_account(account) == []

        clock.advance(seconds=5)
        released = ledger.scan_account(account)

        assert account.balance == Decimal("1000.00")
        assert not box.is_active
        assert box.released_at == clock.now()
        assert len(released) == 1
        assert released[0].lock_box_id == box.id
        assert released[0].amount == Decimal("300")
        assert context.release_log == released
        assert audit_storage.events[-1].event_type == AuditEventType.RELEASE_LOCKBOX

    def test_scan_is_idempotent(self, ledger, make_account, clock, context, audit_storage):
        """Test that a second scan releases nothing and credits nothing."""
        account = make_account(balance="1000.00")
        ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))
        clock.advance(seconds=10)

        ledger.scan_account(account)
        events_after_first = len(audit_storage.events)
        assert ledger.scan_account(account) == []

        assert account.balance == Decimal("1000.00")
        assert len(context.release_log) == 1
        assert len(audit_storage.events) == events_after_first

    def test_scan_releases_in_creation_order(self, ledger, make_account, clock):
        """Test that several matured boxes are released oldest first."""
        account = make_account(balance="1000.00")
        late = ledger.create_lock_box(account, "10", clock.now() + timedelta(seconds=30))
        early = ledger.create_lock_box(account, "20", clock.now() + timedelta(seconds=5))
        pending = ledger.create_lock_box(account, "30", clock.now() + timedelta(days=1))

        clock.advance(minutes=1)
        released = ledger.scan_account(account)

        assert [e.lock_box_id for e in released] == [late.id, early.id]
        assert pending.is_active
        assert account.balance == Decimal("970.00")

    def test_scan_all_covers_every_account(self, ledger, make_account, clock):
        """Test the all-accounts scan."""
        alice = make_account("alice")
        bob = make_account("bob")
        ledger.create_lock_box(alice, "100", clock.now() + timedelta(seconds=1))
        ledger.create_lock_box(bob, "200", clock.now() + timedelta(seconds=1))
        clock.advance(seconds=1)

        released = ledger.scan_all()

        assert sorted(e.username for e in released) == ["alice", "bob"]
        assert alice.balance == Decimal("1000.00")
        assert bob.balance == Decimal("1000.00")

    def test_money_is_conserved(self, ledger, make_account, clock):
        """Test that balance + locked never changes across create/release cycles."""
        account = make_account(balance="500.00")
        start = total_value(account)

        for i, amount in enumerate(["50", "125.25", "0.75", "200"]):
            ledger.create_lock_box(account, amount, clock.now() + timedelta(seconds=i + 1))
            assert total_value(account) == start

        for _ in range(5):
            clock.advance(seconds=1)
            ledger.scan_account(account)
            assert total_value(account) == start

        assert account.balance == start
        assert account.active_lock_boxes == []

    def test_concurrent_scans_release_once(self, ledger, make_account, clock, context):
        """Test that racing scans never release a box twice."""
        account = make_account(balance="1000.00")
        for _ in range(20):
            ledger.create_lock_box(account, "10", clock.now() + timedelta(seconds=1))
        clock.advance(seconds=1)

        barrier = threading.Barrier(4)

        def scan():
            barrier.wait()
            ledger.scan_account(account)

        threads = [threading.Thread(target=scan) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert account.balance == Decimal("1000.00")
        assert len(context.release_log) == 20


class TestExplicitRelease:
    """Tests for releasing a single box on request."""

    def test_release_matured_box(self, ledger, make_account, clock):
        """Test a valid release credits the owner."""
        account = make_account(balance="1000.00")
        box = ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))
        clock.advance(seconds=5)

        event = ledger.release_lock_box(account, box.id)

        assert event.lock_box_id == box.id
        assert account.balance == Decimal("1000.00")

    def test_double_release_is_rejected(self, ledger, make_account, clock, context):
        """Test that the second release raises and leaves the balance alone."""
        account = make_account(balance="1000.00")
        box = ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))
        clock.advance(seconds=5)
        ledger.release_lock_box(account, box.id)

        with pytest.raises(AlreadyReleased):
            ledger.release_lock_box(account, box.id)

        assert account.balance == Decimal("1000.00")
        assert len(context.release_log) == 1

    def test_release_before_maturity(self, ledger, make_account, clock):
        """Test that an early release is refused."""
        account = make_account(balance="1000.00")
        box = ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))
        clock.advance(seconds=4)

        with pytest.raises(LockBoxNotMatured):
            ledger.release_lock_box(account, box.id)
        assert box.is_active
        assert account.balance == Decimal("700.00")

    def test_release_unknown_box(self, ledger, make_account):
        """Test that another account's id is not found."""
        account = make_account()
        with pytest.raises(LockBoxNotFound):
            ledger.release_lock_box(account, 99)


class TestDepositAndStatus:
    """Tests for deposits and activation toggling."""

    def test_deposit(self, ledger, make_account, audit_storage):
        """Test a deposit credits the balance and is audited."""
        account = make_account(balance="10.00")
        assert ledger.deposit(account, "5.25") == Decimal("15.25")
        assert audit_storage.events[-1].event_type == AuditEventType.BALANCE_UPDATE

    def test_invalid_deposit(self, ledger, make_account, audit_storage):
        """Test a rejected deposit changes nothing."""
        account = make_account(balance="10.00")
        with pytest.raises(InvalidAmount):
            ledger.deposit(account, "-5")
        assert account.balance == Decimal("10.00")
        assert audit_storage.events == []

    def test_toggle_keeps_money(self, ledger, make_account, clock, audit_storage):
        """Test deactivation leaves balance and boxes untouched."""
        account = make_account(balance="1000.00")
        ledger.create_lock_box(account, "300", clock.now() + timedelta(seconds=5))

        assert ledger.toggle_active(account, actor="admin") is False
        assert account.balance == Decimal("700.00")
        assert len(account.active_lock_boxes) == 1
        assert ledger.toggle_active(account, actor="admin") is True

        status_events = [
            e for e in audit_storage.events
            if e.event_type == AuditEventType.USER_STATUS_CHANGE
        ]
        assert len(status_events) == 2
        assert all(e.username == "alice" for e in status_events)
