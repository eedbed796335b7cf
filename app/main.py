"""
Console Frontend for Time-Locked Savings

This is the menu-driven interface a single operator uses to act as
users and as the administrator.

DESIGN PRINCIPLES:
1. Simple, numbered menus
2. Clear error messages; a rejected operation never changes state
3. Every login shows what the release scan just did
4. State is flushed on exit, including Ctrl-C

Structured logs go to a file so they never mix with the menus.
"""

import argparse
import sys
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from timelock.audit import configure_logging
from timelock.config import get_settings
from timelock.errors import TimeLockError
from timelock.models.query import QueryResult
from timelock.orchestrator import AppComponents, create_app_components
from timelock.queries import format_duration
from timelock.services.storage import StorageError


DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def prompt(label: str) -> str:
    return input(f"{label}: ").strip()


def prompt_choice(title: str, options: list[str]) -> str:
    print()
    print(f"=== {title} ===")
    for i, option in enumerate(options, 1):
        print(f"{i}. {option}")
    return prompt("Choose an option")


def report_error(error: Exception) -> None:
    if isinstance(error, ValidationError):
        messages = "; ".join(e["msg"] for e in error.errors())
        print(f"Error: {messages}")
    else:
        print(f"Error: {error}")


def parse_duration(value: str, unit: str) -> timedelta:
    """Turn '30' + 'm' into a timedelta. Raises ValueError on bad input."""
    unit = unit.strip().lower()
    if unit not in DURATION_UNITS:
        raise ValueError(f"Unknown unit {unit!r}; use one of s, m, h, d")
    count = int(value)
    return timedelta(**{DURATION_UNITS[unit]: count})


def print_releases(releases) -> None:
    if not releases:
        return
    print(f"{len(releases)} lock box(es) released:")
    for event in releases:
        print(
            f"  #{event.lock_box_id}: {event.amount:.2f} returned to balance "
            f"at {event.released_at.strftime(TIME_FORMAT)}"
        )


def print_lock_boxes(result: QueryResult) -> None:
    print(result.query_description)
    if not result.data_found:
        print("  No lock boxes found.")
        return
    for row in result.results:
        line = f"  #{row['id']}  {row['amount']:.2f}  {row['state']}"
        if row["state"] == "active":
            line += (
                f"  unlocks {row['unlock_at'].strftime(TIME_FORMAT)}"
                f" ({row['time_remaining_text']})"
            )
        else:
            line += f"  released {row['released_at'].strftime(TIME_FORMAT)}"
        print(line)
    print(
        f"  Locked: {result.summary['locked_total']:.2f}"
        f"  Released: {result.summary['released_total']:.2f}"
    )


def print_users(result: QueryResult) -> None:
    if not result.data_found:
        print("No registered users.")
        return
    for row in result.results:
        status = "active" if row["is_active"] else "INACTIVE"
        print(
            f"  {row['username']:<20} balance {row['balance']:>12.2f}"
            f"  locked {row['locked_total']:>12.2f}"
            f"  boxes {row['active_lock_boxes']}/{row['released_lock_boxes']}"
            f"  {status}"
        )
    summary = result.summary
    print(
        f"{result.result_count} user(s), {summary['active_users']} active, "
        f"total balance {summary['total_balance']:.2f}, "
        f"total locked {summary['total_locked']:.2f}"
    )


def print_release_log(result: QueryResult) -> None:
    print(result.query_description)
    if not result.data_found:
        print("  Release log is empty.")
        return
    for row in result.results:
        print(
            f"  {row['released_at'].strftime(TIME_FORMAT)}  #{row['lock_box_id']}"
            f"  {row['username']}  {row['amount']:.2f}"
        )
    print(f"  Total released: {result.summary['total_released']:.2f}")


# -----------------------------------------------------------------------------
# Menus
# -----------------------------------------------------------------------------

def register(app: AppComponents) -> None:
    username = prompt("Username")
    password = prompt("Password")
    deposit = prompt("Initial deposit (blank for 0)") or "0"
    try:
        account = app.registration.register(username, password, Decimal(deposit))
    except ArithmeticError:
        print(f"Error: not a valid amount: {deposit!r}")
        return
    except (TimeLockError, ValidationError) as e:
        report_error(e)
        return
    print(f"Registered '{account.username}' with balance {account.balance:.2f}")


def create_lock_box(app: AppComponents) -> None:
    amount = prompt("Amount to lock")
    value = prompt("Lock duration")
    unit = prompt("Unit (s/m/h/d)")
    try:
        duration = parse_duration(value, unit)
        box = app.user_session.create_lock_box(amount, duration)
    except (ValueError, OverflowError) as e:
        print(f"Error: {e}")
        return
    except TimeLockError as e:
        report_error(e)
        return
    print(
        f"Lock box #{box.id} holds {box.amount:.2f} until "
        f"{box.unlock_at.strftime(TIME_FORMAT)} ({format_duration(duration)})"
    )


def view_lock_boxes(app: AppComponents) -> None:
    choice = prompt_choice("View lock boxes", ["Active", "Released", "Both"])
    filters = {
        "1": (True, False),
        "2": (False, True),
        "3": (True, True),
    }
    if choice not in filters:
        print("Invalid option.")
        return
    show_active, show_released = filters[choice]
    print_lock_boxes(app.user_session.view_lock_boxes(show_active, show_released))


def release_lock_box(app: AppComponents) -> None:
    value = prompt("Lock box id")
    try:
        event = app.user_session.release_lock_box(int(value))
    except ValueError:
        print(f"Error: not a lock box id: {value!r}")
        return
    except TimeLockError as e:
        report_error(e)
        return
    print_releases([event])


def user_menu(app: AppComponents) -> None:
    session = app.user_session
    while session.is_logged_in:
        account = session.account
        choice = prompt_choice(
            f"Logged in as {account.username}",
            [
                "View balance",
                "Deposit",
                "Create lock box",
                "View lock boxes",
                "Check releases",
                "Release a matured lock box",
                "Logout",
            ],
        )
        try:
            if choice == "1":
                row = session.summary().results[0]
                print(f"Balance: {row['balance']:.2f}")
                print(f"Locked:  {row['locked_total']:.2f} in {row['active_lock_boxes']} box(es)")
            elif choice == "2":
                new_balance = session.deposit(prompt("Amount to deposit"))
                print(f"New balance: {new_balance:.2f}")
            elif choice == "3":
                create_lock_box(app)
            elif choice == "4":
                view_lock_boxes(app)
            elif choice == "5":
                releases = session.check_releases()
                if releases:
                    print_releases(releases)
                else:
                    print("No lock boxes have matured.")
            elif choice == "6":
                release_lock_box(app)
            elif choice == "7":
                session.logout()
                print("Logged out.")
            else:
                print("Invalid option.")
        except TimeLockError as e:
            report_error(e)


def admin_menu(app: AppComponents) -> None:
    session = app.admin_session
    while session.is_logged_in:
        choice = prompt_choice(
            "Administrator",
            [
                "List users",
                "Toggle user status",
                "View release log",
                "Clear release log",
                "Release all matured lock boxes",
                "Logout",
            ],
        )
        try:
            if choice == "1":
                print_users(session.list_users())
            elif choice == "2":
                username = prompt("Username")
                is_active = session.toggle_user_status(username)
                print(f"'{username}' is now {'active' if is_active else 'inactive'}.")
            elif choice == "3":
                username = prompt("Filter by username (blank for all)") or None
                print_release_log(session.view_release_log(username))
            elif choice == "4":
                if prompt("Type 'yes' to clear the release log").lower() == "yes":
                    removed = session.clear_release_log()
                    print(f"Removed {removed} release record(s).")
                else:
                    print("Cancelled.")
            elif choice == "5":
                releases = session.release_all_matured()
                if releases:
                    print_releases(releases)
                else:
                    print("No lock boxes have matured.")
            elif choice == "6":
                session.logout()
                print("Logged out.")
            else:
                print("Invalid option.")
        except TimeLockError as e:
            report_error(e)


def main_menu(app: AppComponents) -> None:
    while True:
        choice = prompt_choice(
            "Time-Locked Savings",
            ["Register", "User login", "Admin login", "Exit"],
        )
        if choice == "1":
            register(app)
        elif choice == "2":
            try:
                account, releases = app.user_session.login(
                    prompt("Username"), prompt("Password")
                )
            except TimeLockError as e:
                report_error(e)
                continue
            print(f"Welcome, {account.username}.")
            print_releases(releases)
            user_menu(app)
        elif choice == "3":
            try:
                app.admin_session.login(prompt("Username"), prompt("Password"))
            except TimeLockError as e:
                report_error(e)
                continue
            admin_menu(app)
        elif choice == "4":
            return
        else:
            print("Invalid option.")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="timelock",
        description="Time-locked savings console",
    )
    parser.add_argument(
        "--no-background-scan",
        action="store_true",
        help="Do not start the periodic release scanner",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Main application entry point."""
    args = parse_args(argv)
    settings = get_settings()
    app_settings = settings.app
    configure_logging(
        level=(args.log_level or app_settings.log_level).upper(),
        log_file=app_settings.log_file,
    )

    app = create_app_components(settings)
    if app.scanner is not None and not args.no_background_scan:
        app.scanner.start()

    try:
        main_menu(app)
    except (KeyboardInterrupt, EOFError):
        print()
        print("Interrupted.")

    try:
        app.shutdown()
    except StorageError as e:
        print(f"Failed to save data: {e}", file=sys.stderr)
        return 1

    print("Data saved. Goodbye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
