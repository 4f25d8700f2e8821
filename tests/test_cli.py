from unittest.mock import MagicMock, patch

import pytest

from turf_booking import cli


def test_parse_book_arguments():
    args = cli.parse_arguments(["--demo", "book", "turf1", "--date", "2025-01-01", "--from", "20", "--to", "22", "--notes", "bibs"])
    assert args.command == "book"
    assert args.demo is True
    assert args.turf == "turf1"
    assert cli.clicks_from_args(args) == [20, 21, 22]


def test_clicks_from_repeated_click():
    args = cli.parse_arguments(["book", "arena", "--click", "4", "--click", "5"])
    assert cli.clicks_from_args(args) == [4, 5]


def test_clicks_from_single_slot():
    args = cli.parse_arguments(["book", "arena", "--from", "7"])
    assert cli.clicks_from_args(args) == [7]


@patch("turf_booking.cli.run.show_slots")
@patch("turf_booking.cli.setup_logging")
def test_main_calls_show_slots(mock_logging, mock_show):
    cli.main(["slots", "arena", "--sport", "3", "--date", "2025-01-01"])

    mock_show.assert_called_once_with("arena", sport_ref="3", date="2025-01-01", demo=False)


@patch("turf_booking.cli.run.book")
@patch("turf_booking.cli.setup_logging")
def test_main_calls_book(mock_logging, mock_book):
    mock_book.return_value = MagicMock()

    cli.main(["-v", "book", "arena", "--click", "12", "--click", "13"])

    mock_book.assert_called_once_with(
        "arena", [12, 13], sport_ref=None, date=None, special_requests="", demo=False
    )
    mock_logging.assert_called_once_with(True)


@patch("turf_booking.cli.run.book", return_value=None)
@patch("turf_booking.cli.setup_logging")
def test_main_book_failure_exits(mock_logging, mock_book):
    with pytest.raises(SystemExit):
        cli.main(["book", "arena", "--click", "12"])


@patch("turf_booking.cli.run.list_bookings")
@patch("turf_booking.cli.setup_logging")
def test_main_calls_list_bookings(mock_logging, mock_list):
    cli.main(["bookings"])
    mock_list.assert_called_once_with(demo=False)


@patch("turf_booking.cli.run.cancel", return_value=True)
@patch("turf_booking.cli.setup_logging")
def test_main_calls_cancel(mock_logging, mock_cancel):
    cli.main(["--demo", "cancel", "booking-1", "--reason", "rain"])
    mock_cancel.assert_called_once_with("booking-1", reason="rain", demo=True)


@patch("turf_booking.cli.run.cancel", return_value=False)
@patch("turf_booking.cli.setup_logging")
def test_main_cancel_failure_exits(mock_logging, mock_cancel):
    with pytest.raises(SystemExit):
        cli.main(["cancel", "91"])
    mock_cancel.assert_called_once_with("91", reason=None, demo=False)
