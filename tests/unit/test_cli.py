"""Unit tests for the command line entry point."""

from __future__ import annotations
import json
import pytest
from unittest.mock import patch

from ami_refresh import cli


@pytest.mark.unit
class TestParseArgs:
    def test_config_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    def test_blank_config_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["-c", "   "])

    def test_defaults(self):
        args = cli.parse_args(["--config", "/etc/ami-refresh"])
        assert args.config == "/etc/ami-refresh"
        assert args.loglevel == "info"

    def test_loglevel_case_insensitive(self):
        assert cli.parse_args(["-c", "x", "-l", "DEBUG"]).loglevel == "debug"

    def test_unknown_loglevel_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["-c", "x", "-l", "verbose"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.parse_args(["--version"])
        assert exc.value.code == 0
        assert "ami-refresh" in capsys.readouterr().out


@pytest.mark.unit
class TestMain:
    def test_config_errors_exit_nonzero(self, tmp_path):
        """
        GIVEN a config directory with an invalid record
        WHEN main is called
        THEN it should return 1 without starting the engine
        """
        (tmp_path / "bad.json").write_text(json.dumps({"Source": {}}))

        with patch.object(cli, "start_engine") as start_engine:
            assert cli.main(["-c", str(tmp_path)]) == 1

        start_engine.assert_not_called()

    def test_valid_config_starts_engine(self, tmp_path):
        (tmp_path / "a.json").write_text(
            json.dumps(
                [
                    {"Account": {"Name": "prod", "AccessKeyId": "A",
                                 "SecretAccessKey": "S", "OwnerId": "1"}},
                    {"UserData": {"Name": "base", "Bash": "echo hi"}},
                    {"Project": {"Name": "p", "Account": "prod", "UserData": "base"}},
                ]
            )
        )

        with patch.object(cli, "start_engine") as start_engine:
            assert cli.main(["-c", str(tmp_path), "-l", "error"]) == 0

        storage = start_engine.call_args.args[0]
        assert list(storage.projects) == ["p"]

    def test_engine_configuration_error_exits_nonzero(self, tmp_path):
        (tmp_path / "empty.json").write_text("")

        with patch.object(cli, "start_engine", side_effect=cli.ConfigurationError("x")):
            assert cli.main(["-c", str(tmp_path)]) == 1
