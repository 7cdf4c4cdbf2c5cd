"""Tests for the command line front end (commands that need no database)."""

import pytest

from phantm import cli
from phantm.services.environment_store import EnvironmentStore

TEMPLATE = """
CREATE SCHEMA {{SCHEMA_NAME}};
CREATE TYPE {{SCHEMA_NAME}}.status AS ENUM ('on', 'off');
CREATE TABLE {{SCHEMA_NAME}}.devices (id int PRIMARY KEY, status {{SCHEMA_NAME}}.status);
CREATE TABLE {{SCHEMA_NAME}}.readings (device_id int, FOREIGN KEY (device_id) REFERENCES {{SCHEMA_NAME}}.devices(id));
CREATE INDEX idx_readings_device ON {{SCHEMA_NAME}}.readings(device_id);
"""


@pytest.fixture
def store(tmp_path):
    return EnvironmentStore(tmp_path / "config.json")


@pytest.fixture
def run(store):
    def _run(*argv):
        args = cli.build_parser().parse_args(list(argv))
        return cli.run(args, store)
    return _run


ENV_ARGS = ["--host", "localhost", "--database", "app", "--user", "postgres", "--password", "pw"]


class TestParser:
    def test_create_flags(self):
        args = cli.build_parser().parse_args(["--env", "prod", "create", "-f", "-n", "account_acme", "-y"])

        assert args.env == "prod"
        assert args.force is True
        assert args.name == "account_acme"
        assert args.yes is True
        assert args.handler is cli.cmd_create

    def test_bulk_count_must_be_integer(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["create-bulk", "many"])

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestEnvCommands:
    def test_add_list_use_remove(self, run, store, capsys):
        assert run("env", "add", "dev", *ENV_ARGS) == 0
        assert run("env", "add", "prod", *ENV_ARGS, "--ssl", "--port", "6432") == 0
        assert store.get_active_environment() == "dev"

        assert run("env", "list") == 0
        out = capsys.readouterr().out
        assert "* dev" in out
        assert "prod  postgres@localhost:6432/app" in out

        assert run("env", "use", "prod") == 0
        assert store.get_active_environment() == "prod"

        assert run("env", "remove", "prod") == 0
        assert store.get_active_environment() == "dev"

    def test_show_masks_password(self, run, capsys):
        run("env", "add", "dev", *ENV_ARGS)

        assert run("env", "show") == 0

        out = capsys.readouterr().out
        assert "********" in out
        assert "pw" not in out.replace("Password", "")

    def test_unknown_environment_exits_1(self, run, capsys):
        assert run("env", "use", "nope") == 1
        assert "nope" in capsys.readouterr().err


class TestTemplateCommands:
    def test_use_and_validate(self, run, store, tmp_path, capsys):
        template = tmp_path / "base.sql"
        template.write_text(TEMPLATE, encoding="utf-8")
        run("env", "add", "dev", *ENV_ARGS)

        assert run("use", str(template)) == 0
        assert store.get_template_path("dev") == str(template.resolve())

        assert run("validate") == 0
        out = capsys.readouterr().out
        assert "Types:        1" in out
        assert "Tables:       2" in out
        assert "Indexes:      1" in out
        assert "Foreign keys: 1" in out

    def test_validate_rejects_incomplete_template(self, run, tmp_path, capsys):
        template = tmp_path / "base.sql"
        template.write_text("CREATE SCHEMA {{SCHEMA_NAME}};", encoding="utf-8")
        run("env", "add", "dev", *ENV_ARGS)
        run("use", str(template))

        assert run("validate") == 1
        assert "CREATE TYPE" in capsys.readouterr().err

    def test_validate_without_template(self, run, capsys):
        run("env", "add", "dev", *ENV_ARGS)

        assert run("validate") == 1
        assert "phantm use" in capsys.readouterr().err

    def test_use_clear(self, run, store, tmp_path):
        template = tmp_path / "base.sql"
        template.write_text(TEMPLATE, encoding="utf-8")
        run("env", "add", "dev", *ENV_ARGS)
        run("use", str(template))

        assert run("use", "--clear") == 0
        assert store.get_template_path("dev") is None

    def test_no_environment_configured(self, run, capsys):
        assert run("validate") == 1
        assert "env add" in capsys.readouterr().err


class TestGuards:
    @pytest.mark.parametrize("count", ["0", "101"])
    def test_bulk_count_checked_before_connecting(self, run, count, monkeypatch, capsys):
        def fail(*args, **kwargs):
            raise AssertionError("database should not be touched")

        monkeypatch.setattr(cli, "database_scope", fail)

        assert run("create-bulk", count, "-y") == 1
        assert "between 1 and 100" in capsys.readouterr().err

    def test_declined_removal_exits_0(self, run, monkeypatch, capsys):
        run("env", "add", "dev", *ENV_ARGS)
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        def fail(*args, **kwargs):
            raise AssertionError("database should not be touched")

        monkeypatch.setattr(cli, "database_scope", fail)

        assert run("remove", "account_a1") == 0
        assert "cancelled" in capsys.readouterr().out


class TestConfirm:
    def test_assume_yes(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: pytest.fail("prompted"))
        assert cli.confirm("Continue?", assume_yes=True) is True

    @pytest.mark.parametrize("answer, expected", [("", True), ("y", True), ("YES", True), ("n", False), ("no", False)])
    def test_answers(self, monkeypatch, answer, expected):
        monkeypatch.setattr("builtins.input", lambda prompt: answer)
        assert cli.confirm("Continue?") is expected

    def test_end_of_input_declines(self, monkeypatch):
        def eof(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", eof)
        assert cli.confirm("Continue?") is False
