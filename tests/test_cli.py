"""Tests for CLI commands."""

import os

import pytest
from click.testing import CliRunner

from procview.cli import build_state, main, parse_clause
from procview.config import ClauseConfig, Config
from procview.filters import NumericClause
from procview.models import ProcessStatus
from procview.sorting import SortConfig, SortDirection, SortField


@pytest.fixture
def runner(home, reset_logging) -> CliRunner:
    return CliRunner()


def build(config: Config | None = None, **overrides):
    options = {
        "search": "",
        "sort_field": None,
        "ascending": None,
        "cpu": None,
        "ram": None,
        "runtime": None,
        "statuses": (),
        "pins": (),
    }
    options.update(overrides)
    return build_state(config or Config(), **options)


class TestParseClause:
    """Tests for parse_clause()."""

    @pytest.mark.parametrize(
        "expression, expected",
        [
            (">50", (">", 50.0)),
            ("<= 1.5", ("<=", 1.5)),
            (" = 0 ", ("=", 0.0)),
            (">=200", (">=", 200.0)),
            ("<3", ("<", 3.0)),
        ],
    )
    def test_valid(self, expression, expected):
        assert parse_clause(expression) == expected

    @pytest.mark.parametrize("expression", ["50", "> ", "!=5", ">abc", "", "=>5"])
    def test_invalid(self, expression):
        with pytest.raises(ValueError, match="Expected OPERATOR VALUE"):
            parse_clause(expression)


class TestBuildState:
    """Tests for build_state()."""

    def test_defaults_from_config(self):
        state = build()
        assert state.query == ""
        assert not state.filters.is_active
        assert state.sort == SortConfig(SortField.CPU_USAGE, SortDirection.DESC)
        assert state.pinned == frozenset()

    def test_overrides(self):
        state = build(
            search="chrome",
            sort_field="name",
            ascending=True,
            cpu=(">", 50.0),
            statuses=("Running",),
            pins=("/usr/bin/top",),
        )
        assert state.query == "chrome"
        assert state.sort == SortConfig(SortField.NAME, SortDirection.ASC)
        assert state.filters.cpu == NumericClause(">", 50.0, True)
        assert state.filters.status.values == {ProcessStatus.RUNNING}
        assert state.pinned == {"/usr/bin/top"}

    def test_direction_only_keeps_config_field(self):
        config = Config()
        config.view.sort_field = "pid"
        state = build(config, ascending=False)
        assert state.sort == SortConfig(SortField.PID, SortDirection.DESC)

    def test_cli_clause_replaces_config_clause(self):
        config = Config()
        config.filters.ram = ClauseConfig(operator="<", value=10.0, enabled=False)
        state = build(config, ram=(">=", 100.0))
        assert state.filters.ram == NumericClause(">=", 100.0, True)


def test_help(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "list" in result.output
    assert "tui" in result.output
    assert "config" in result.output


def test_list_help_shows_filters(runner):
    result = runner.invoke(main, ["list", "--help"])
    assert result.exit_code == 0
    for option in ("--search", "--sort", "--cpu", "--ram", "--runtime", "--status", "--pin"):
        assert option in result.output


def test_list_shows_processes(runner):
    result = runner.invoke(main, ["list", "--interval", "0", "--sort", "pid", "--asc"])
    assert result.exit_code == 0, result.output
    assert "processes" in result.output
    assert "PID" in result.output


def test_list_finds_own_process(runner):
    """Searching for our own PID shows this test process."""
    pid = str(os.getpid())
    result = runner.invoke(main, ["list", "--interval", "0", "--search", pid])
    assert result.exit_code == 0, result.output
    assert pid in result.output


def test_list_search_without_matches(runner):
    result = runner.invoke(
        main, ["list", "--interval", "0", "--search", "no-such-process-xyzzy"]
    )
    assert result.exit_code == 0, result.output
    assert "0/" in result.output


def test_list_writes_log_file(runner, home):
    runner.invoke(main, ["list", "--interval", "0", "--limit", "1"])
    assert (home / ".local" / "state" / "procview" / "procview.log").exists()


def test_list_rejects_bad_clause(runner):
    result = runner.invoke(main, ["list", "--cpu", "lots"])
    assert result.exit_code == 2
    assert "Expected OPERATOR VALUE" in result.output


def test_list_rejects_unknown_sort_field(runner):
    result = runner.invoke(main, ["list", "--sort", "threads"])
    assert result.exit_code == 2


def test_list_reports_bad_config(runner):
    Config().config_dir.mkdir(parents=True)
    Config().config_path.write_text('[view]\nsort_field = "threads"\n')

    result = runner.invoke(main, ["list", "--interval", "0"])
    assert result.exit_code == 1
    assert "Invalid sort_field" in result.output


def test_config_init_writes_file(runner, home):
    result = runner.invoke(main, ["config", "init"])
    assert result.exit_code == 0, result.output
    assert (home / ".config" / "procview" / "config.toml").exists()


def test_config_init_refuses_overwrite(runner):
    runner.invoke(main, ["config", "init"])
    result = runner.invoke(main, ["config", "init"])
    assert result.exit_code == 1
    assert "already exists" in result.output

    result = runner.invoke(main, ["config", "init", "--force"])
    assert result.exit_code == 0


def test_config_show(runner):
    config = Config()
    config.filters.cpu = ClauseConfig(operator=">", value=50.0, enabled=True)
    config.filters.status.values = ["Zombie"]
    config.save()

    result = runner.invoke(main, ["config", "show"])
    assert result.exit_code == 0, result.output
    assert "cpu_usage desc" in result.output
    assert ">50 (on)" in result.output
    assert "Zombie" in result.output


def test_list_reports_wrongly_typed_config(runner):
    """A string where a number belongs is a clean error, not a traceback."""
    Config().config_dir.mkdir(parents=True)
    Config().config_path.write_text('[monitor]\npoll_rate = "fast"\n')

    result = runner.invoke(main, ["list", "--interval", "0"])
    assert result.exit_code == 1
    assert "poll_rate must be a number" in result.output
