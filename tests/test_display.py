"""Tests for display helpers."""

import pytest

from clauditor.display import (
    cpu_style,
    extract_project_name,
    format_memory,
    format_table,
    mem_style,
    shorten_path,
    state_indicator,
    total_style,
)
from clauditor.models import RunState
from conftest import make_record


def test_format_memory_megabytes():
    """Test usage below 1GB is shown in MB."""
    assert format_memory(5.0, total_mem_gb=16) == "819MB"


def test_format_memory_gigabytes():
    """Test usage of 1GB or more is shown in GB."""
    assert format_memory(25.0, total_mem_gb=16) == "4.0GB"


def test_format_memory_uses_system_total():
    """Test the machine's RAM is used when no total is given."""
    result = format_memory(50.0)
    assert result.endswith("MB") or result.endswith("GB")


class TestShortenPath:
    """Tests for shorten_path."""

    def test_empty(self):
        assert shorten_path("") == "-"

    def test_short_path_unchanged(self):
        assert shorten_path("/home/dev/app") == "/home/dev/app"

    def test_last_two_components(self):
        path = "/Users/developer/projects/clients/acme/backend"
        assert shorten_path(path) == ".../acme/backend"

    def test_long_last_component(self):
        path = "/srv/" + "a" * 20 + "/" + "b" * 40
        result = shorten_path(path, max_len=30)

        assert result == ".../" + "b" * 26
        assert len(result) == 30

    def test_no_separators(self):
        """Test a long name without enough components is kept."""
        name = "x" * 50
        assert shorten_path(name) == name


class TestExtractProjectName:
    """Tests for extract_project_name."""

    def test_from_working_dir(self):
        assert extract_project_name(make_record(1, working_dir="/home/dev/alpha/")) == "alpha"

    def test_root_working_dir_falls_through(self):
        record = make_record(1, working_dir="/", args="--project=/repos/gamma")
        assert extract_project_name(record) == "gamma"

    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            ("--cwd=/work/beta", "beta"),
            ("--cwd /work/delta --resume", "delta"),
            ("--project=/repos/gamma", "gamma"),
            ('--add-dir "/tmp/quoted path"', "quoted path"),
        ],
    )
    def test_from_arguments(self, args, expected):
        assert extract_project_name(make_record(1, args=args)) == expected

    def test_resumed_session(self):
        assert extract_project_name(make_record(1, args="--resume")) == "resumed session"

    def test_long_args_truncated(self):
        record = make_record(1, args="--model opus --print explain-this-function")
        assert extract_project_name(record) == "--model opus --print..."

    def test_short_args(self):
        assert extract_project_name(make_record(1, args="-c")) == "-c"

    def test_falls_back_to_command(self):
        assert extract_project_name(make_record(1)) == "claude"


def test_styles():
    """Test colour thresholds."""
    assert [cpu_style(v) for v in (10, 30, 60, 90)] == ["green", "cyan", "yellow", "red"]
    assert [mem_style(v) for v in (10, 30, 60)] == ["green", "yellow", "red"]
    assert [total_style(v) for v in (10, 60, 90)] == ["green", "yellow", "red"]


def test_state_indicator():
    assert state_indicator(make_record(1, state=RunState.PAUSED)) == "||"
    assert state_indicator(make_record(1)) == ">"


class TestFormatTable:
    """Tests for the plain-text table."""

    def test_empty(self):
        assert format_table([]) == "No Claude processes running"

    def test_rows(self):
        records = [
            make_record(10, cpu=8.0, mem=1.5, working_dir="/work/alpha", descendants=(11, 12)),
            make_record(20, cpu=0.5, state=RunState.PAUSED),
        ]

        lines = format_table(records).splitlines()

        assert lines[0].startswith("ST")
        assert len(lines) == 3
        assert "10" in lines[1] and "8.0%" in lines[1] and "alpha" in lines[1]
        assert lines[1].split()[4] == "2"
        assert lines[2].startswith("||")
        assert lines[2].rstrip().endswith("-")
