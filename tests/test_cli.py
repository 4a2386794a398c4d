"""
Tests for the massload command line.
"""

import pytest

from massload import cli
from massload.entities import EntityKind


class TestParseArgs:
    def test_defaults(self):
        args = cli.parse_args([])
        assert args.config is None
        assert args.dry_run is False
        assert args.only is None
        assert args.log_level == "INFO"

    def test_targets_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--dry-run", "--output", "seed.sql"])

    def test_only_validates_tables(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--only", "invoices"])
        assert cli.parse_args(["--only", "users", "orders"]).only == ["users", "orders"]


class TestMain:
    """End-to-end runs against non-database sinks."""

    def test_dry_run(self, small_config_file, capsys):
        assert cli.main(["--dry-run", "--config", str(small_config_file), "--stats"]) == 0
        out = capsys.readouterr().out
        assert "Total rows: 142" in out
        assert "=== PERFORMANCE SUMMARY ===" in out
        assert "users: 25 records" in out
        assert "Success!" in out

    def test_output_file(self, small_config_file, tmp_path, capsys):
        output = tmp_path / "seed.sql"
        assert cli.main(["--output", str(output), "--config", str(small_config_file)]) == 0
        text = output.read_text()
        for kind in EntityKind:
            assert f"COPY {kind.table} (id, " in text
        assert "SELECT setval('orders_id_seq', 40);" in text

    def test_seed_override(self, small_config_file, tmp_path):
        a, b = tmp_path / "a.sql", tmp_path / "b.sql"
        cli.main(["--output", str(a), "--config", str(small_config_file), "--seed", "1"])
        cli.main(["--output", str(b), "--config", str(small_config_file), "--seed", "2"])
        assert a.read_text() != b.read_text()

    def test_invalid_config_exit_2(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("batch_sizes:\n  users: 0\n")
        assert cli.main(["--dry-run", "--config", str(path)]) == 2
        assert "invalid configuration" in capsys.readouterr().err

    def test_invalid_workers_exit_2(self, small_config_file):
        assert cli.main(["--dry-run", "--config", str(small_config_file), "--workers", "0"]) == 2

    def test_phase_failure_exit_1(self, small_config_file, sink_factory, monkeypatch, capsys):
        sink = sink_factory(fail_kind=EntityKind.PRODUCT)
        monkeypatch.setattr(cli, "build_sink", lambda args: sink)

        assert cli.main(["--config", str(small_config_file)]) == 1
        err = capsys.readouterr().err
        assert "Product phase failed" in err
        assert "'users': 25" in err
        assert sink.closed

    def test_mistyped_config_exit_2(self, tmp_path, capsys):
        path = tmp_path / "typo.yaml"
        path.write_text("seed: abc\n")
        assert cli.main(["--dry-run", "--config", str(path)]) == 2
        assert "invalid configuration: seed" in capsys.readouterr().err

    def test_setup_failure_exit_1(self, small_config_file, sink, monkeypatch, capsys):
        def broken_clear():
            raise RuntimeError("connection reset")

        monkeypatch.setattr(sink, "clear", broken_clear)
        monkeypatch.setattr(cli, "build_sink", lambda args: sink)

        assert cli.main(["--config", str(small_config_file), "--clear"]) == 1
        err = capsys.readouterr().err
        assert "clearDatabase failed: connection reset" in err
        assert "Committed before failure" in err
        assert sink.closed

    def test_missing_config_exit_2(self, tmp_path, capsys):
        assert cli.main(["--dry-run", "--config", str(tmp_path / "nope.yaml")]) == 2
        assert "cannot read config" in capsys.readouterr().err
