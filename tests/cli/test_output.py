"""Tests for output formatting module."""

import json
from io import StringIO

import pytest
from rich.console import Console

from pytron_client.cli.output import (
    format_file_size,
    print_event,
    print_json,
    print_result,
    print_table,
    print_value,
    to_jsonable,
)


def make_console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, force_terminal=False, width=200), buffer


class TestToJsonable:
    """Test conversion of backend values."""

    def test_bytes_as_byte_string(self) -> None:
        assert to_jsonable(b"\x00\xff") == "\x00\xff"

    def test_other_values_unchanged(self) -> None:
        value = {"a": [1, 2]}
        assert to_jsonable(value) is value


class TestPrintJson:
    """Test JSON output."""

    def test_valid_json(self) -> None:
        console, buffer = make_console()
        print_json({"method": "add", "result": 5}, console)
        assert json.loads(buffer.getvalue()) == {"method": "add", "result": 5}

    def test_non_serializable_stringified(self) -> None:
        console, buffer = make_console()
        print_json({"path": object}, console)
        assert "class 'object'" in json.loads(buffer.getvalue())["path"]


class TestPrintValue:
    """Test printing of call results."""

    def test_structured(self) -> None:
        console, buffer = make_console()
        print_value([1, 2], console)
        assert json.loads(buffer.getvalue()) == [1, 2]

    def test_scalar(self) -> None:
        console, buffer = make_console()
        print_value("[not markup]", console)
        assert buffer.getvalue().strip() == "[not markup]"

    def test_none(self) -> None:
        console, buffer = make_console()
        print_value(None, console)
        assert buffer.getvalue().strip() == "null"


class TestPrintTable:
    """Test table output."""

    def test_rows(self) -> None:
        console, buffer = make_console()
        rows = [{"key": "theme", "value": "dark"}, {"key": "panels", "value": ["a", "b"]}]
        print_table(rows, ["key", "value"], title="Backend State", console_instance=console)

        output = buffer.getvalue()
        assert "Backend State" in output
        assert "theme" in output
        assert '["a", "b"]' in output


class TestPrintResult:
    """Test result lines."""

    def test_success_with_details(self) -> None:
        console, buffer = make_console()
        print_result(True, "Resolved icon", {"mime": "image/png", "output": None}, console)

        output = buffer.getvalue()
        assert "Resolved icon" in output
        assert "image/png" in output
        assert "output" not in output


class TestPrintEvent:
    """Test pushed event output."""

    def test_json_line(self) -> None:
        console, buffer = make_console()
        print_event("state:theme", "dark", json_mode=True, console_instance=console)
        assert json.loads(buffer.getvalue()) == {"event": "state:theme", "payload": "dark"}

    def test_human(self) -> None:
        console, buffer = make_console()
        print_event("tick", {"n": 1}, console_instance=console)
        assert buffer.getvalue().strip() == 'tick {"n": 1}'


class TestFormatFileSize:
    """Test human-readable sizes."""

    @pytest.mark.parametrize(
        "size, expected",
        [(0, "0 B"), (512, "512 B"), (1024, "1.00 KB"), (1536, "1.50 KB"), (1024 * 1024, "1.00 MB")],
    )
    def test_sizes(self, size: int, expected: str) -> None:
        assert format_file_size(size) == expected
