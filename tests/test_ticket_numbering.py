import pytest

from supportdesk.tickets.numbering import format_ticket_number, next_sequence_value, parse_ticket_number


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1, "TK-001"), (42, "TK-042"), (999, "TK-999"), (1000, "TK-1000")],
)
def test_format_ticket_number_pads_to_three_digits(value, expected):
    assert format_ticket_number(value) == expected


def test_format_ticket_number_with_custom_prefix_and_width():
    assert format_ticket_number(7, prefix="SUP", width=5) == "SUP-00007"


def test_format_ticket_number_rejects_non_positive_values():
    with pytest.raises(ValueError):
        format_ticket_number(0)


def test_parse_ticket_number_reads_suffix():
    assert parse_ticket_number("TK-010") == 10
    assert parse_ticket_number("TK-1000") == 1000


@pytest.mark.parametrize("raw", ["TK", "TK-", "TK-abc", "001"])
def test_parse_ticket_number_rejects_malformed_values(raw):
    with pytest.raises(ValueError):
        parse_ticket_number(raw)


def test_next_sequence_value_starts_at_one():
    assert next_sequence_value(None) == 1


def test_next_sequence_value_follows_latest():
    assert next_sequence_value("TK-009") == 10
