"""
Tests for the command-line interface.

Commands that only touch the local queue run end to end against a
configuration written into a temporary directory.
"""

import json
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from subdomain_registrar.cli import build_registrar, create_parser, main
from subdomain_registrar.config_io import load_config_from_file, save_config_to_file

from fakes import TEST_ADDRESS, make_config, run_async


def write_local_config(tmp: Path) -> Path:
    """A config whose queue lives in ``tmp`` and that never asks the chain at admission."""
    config_path = tmp / "config.json"
    assert main(["init-config", "--config", str(config_path), "--domain", "bar.id"]) == 0

    config = load_config_from_file(config_path)
    config.persistence.db_path = tmp / "queue.db"
    config.batch.check_core_on_admission = False
    assert save_config_to_file(config, config_path)
    return config_path


class TestParserProperty:
    """
    Tests for argument parsing.
    """

    @given(
        name=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=20),
        dry_run=st.booleans(),
    )
    @settings(max_examples=30)
    def test_register_arguments(self, name: str, dry_run: bool) -> None:
        argv = ["register", name, TEST_ADDRESS, "zonefile.txt", "--token", "bearer abc"]
        if dry_run:
            argv.append("--dry-run")

        args = create_parser().parse_args(argv)

        assert args.command == "register"
        assert (args.name, args.owner, args.zonefile) == (name, TEST_ADDRESS, "zonefile.txt")
        assert args.token == "bearer abc"
        assert args.ip is None
        assert args.dry_run == dry_run

    def test_common_options_on_every_command(self) -> None:
        parser = create_parser()
        for command in ["serve", "list", "issue-batch", "check-zonefiles", "init-config"]:
            args = parser.parse_args([command, "-c", "custom.json", "-v"])
            assert args.config == "custom.json"
            assert args.verbose

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 0
        assert "subdomain-registrar" in capsys.readouterr().out


class TestInitConfigProperty:
    """
    Tests for writing the default configuration.
    """

    def test_init_config_refuses_to_overwrite(self, capsys) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"

            assert main(["init-config", "-c", str(config_path), "-d", "bar.id", "--dry-run"]) == 0
            config = load_config_from_file(config_path)
            assert config.registrar.domain_name == "bar.id"
            assert config.chain.simulation_mode

            assert main(["init-config", "-c", str(config_path)]) == 1
            assert "already exists" in capsys.readouterr().out

            assert main(["init-config", "-c", str(config_path), "-d", "baz.id", "--force"]) == 0
            assert load_config_from_file(config_path).registrar.domain_name == "baz.id"

    def test_missing_config_is_an_error(self, capsys) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assert main(["list", "-c", str(Path(tmp) / "absent.json")]) == 1
        assert "init-config" in capsys.readouterr().err


class TestRegisterCommandProperty:
    """
    Tests for queueing registrations from the command line.
    """

    def test_register_then_list(self, capsys) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            config_path = write_local_config(tmp)
            zonefile = tmp / "foo.zone"
            zonefile.write_text("$ORIGIN foo\n$TTL 3600\n", encoding="utf-8")
            capsys.readouterr()

            argv = ["register", "foo", TEST_ADDRESS, str(zonefile), "-c", str(config_path)]
            assert main(argv) == 0
            assert json.loads(capsys.readouterr().out) == {"status": True, "queue_index": 1}

            assert main(["list", "-c", str(config_path)]) == 0
            listed = json.loads(capsys.readouterr().out)

        assert [(item["name"], item["owner"], item["status"]) for item in listed] == [
            ("foo", TEST_ADDRESS, "received")
        ]

    def test_duplicate_register_fails(self, capsys) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            config_path = write_local_config(tmp)
            zonefile = tmp / "foo.zone"
            zonefile.write_text("$ORIGIN foo\n", encoding="utf-8")

            argv = ["register", "foo", TEST_ADDRESS, str(zonefile), "-c", str(config_path)]
            assert main(argv) == 0
            capsys.readouterr()
            assert main(argv) == 1

        error = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert error["error_type"] == "AlreadyQueuedError"


class TestBuildRegistrarProperty:
    """
    Tests for wiring a registrar from configuration.
    """

    def test_chain_client_shares_registrar_logger(self) -> None:
        registrar = build_registrar(make_config())
        try:
            retry = registrar._chain._retry
            assert retry._logger is registrar.logger
            assert "owner-secret" not in registrar.logger._scrub("key owner-secret")
        finally:
            run_async(registrar.shutdown())
