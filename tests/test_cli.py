"""Tests for the command-line interface."""

import pytest

from police_tracker import cli, config as config_module
from police_tracker.config import ScraperConfig


@pytest.fixture
def no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "load_environment_files", lambda: None)


@pytest.fixture
def pid_config(tmp_path):
    return ScraperConfig(
        firecrawl_api_key="fc-test-key",
        database_url="postgresql://tracker@localhost/tracker",
        pid_file=str(tmp_path / "scraper.pid"),
    )


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_missing_configuration(monkeypatch, no_dotenv, capsys):
    monkeypatch.delenv("FIRECRAWL_API_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    assert cli.main(["status"]) == 1

    err = capsys.readouterr().err
    assert "Configuration error" in err
    assert "  - FIRECRAWL_API_KEY" in err
    assert "  - DATABASE_URL" in err


def test_parser_commands():
    parser = cli.build_parser()

    args = parser.parse_args(["trigger", "--source", "abc"])
    assert args.command == "trigger"
    assert args.source == "abc"

    args = parser.parse_args(["extract", "https://a.co.ke/1", "https://a.co.ke/2"])
    assert args.urls == ["https://a.co.ke/1", "https://a.co.ke/2"]

    assert set(cli.COMMANDS) == {
        "start", "stop", "status", "test", "trigger", "extract", "init-db",
    }


def test_read_pid(tmp_path):
    pid_file = tmp_path / "scraper.pid"
    assert cli.read_pid(str(pid_file)) is None

    pid_file.write_text("not-a-pid")
    assert cli.read_pid(str(pid_file)) is None

    pid_file.write_text("4242\n")
    assert cli.read_pid(str(pid_file)) == 4242


class TestStop:
    def test_not_running(self, pid_config, capsys):
        assert cli.cmd_stop(None, pid_config) == 0
        assert "not running" in capsys.readouterr().out

    def test_sends_sigterm(self, pid_config, monkeypatch):
        sent = []
        monkeypatch.setattr(cli.os, "kill", lambda pid, sig: sent.append((pid, sig)))
        with open(pid_config.pid_file, "w") as f:
            f.write("4242")

        assert cli.cmd_stop(None, pid_config) == 0
        assert sent == [(4242, cli.signal.SIGTERM)]

    def test_stale_pid_file_removed(self, pid_config, monkeypatch, capsys):
        def no_such_process(pid, sig):
            raise ProcessLookupError(pid)

        monkeypatch.setattr(cli.os, "kill", no_such_process)
        with open(pid_config.pid_file, "w") as f:
            f.write("4242")

        assert cli.cmd_stop(None, pid_config) == 0
        assert "stale" in capsys.readouterr().out
        assert cli.read_pid(pid_config.pid_file) is None


def test_start_refuses_when_already_running(pid_config, monkeypatch, capsys):
    monkeypatch.setattr(cli, "pid_alive", lambda pid: True)
    with open(pid_config.pid_file, "w") as f:
        f.write("4242")

    assert cli.cmd_start(None, pid_config) == 1
    assert "already running" in capsys.readouterr().out


def test_init_db_reports_unreachable_database(pid_config, monkeypatch, capsys):
    async def unreachable(self):
        return False

    monkeypatch.setattr(cli.Database, "check_connection", unreachable)

    assert cli.cmd_init_db(None, pid_config) == 1
    assert "Could not connect" in capsys.readouterr().err
