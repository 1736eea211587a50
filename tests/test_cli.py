"""Tests for the CLI runner and result reporting.

The exit code is the contract scripts branch on: 0 = none found,
1 = found, 2 = error. Everything the tool prints goes to stderr.
"""

from pathlib import Path

import pytest

from address_probe.checker import CheckResult
from address_probe.errors import OpenError
from address_probe.runner import Outcome, create_cli, format_report, main, select_outcome
from address_probe.runner.report import format_error, write_report

GENESIS_ADDRESS = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
UNKNOWN_ADDRESS = "12c6DSiU4Rq3P4ZxziKxzrGuvfQ5ui4W6k"


class TestArguments:
    """Tests for argument parsing."""

    def test_no_arguments(self):
        """Both positionals are optional."""
        args = create_cli().parse_args([])

        assert args.db_path is None
        assert args.candidates_path is None
        assert args.batch_size is None
        assert args.stop_on_first_match is None
        assert args.apply_pragmas is None

    def test_positionals(self):
        args = create_cli().parse_args(["refs.db", "list.txt"])

        assert args.db_path == Path("refs.db")
        assert args.candidates_path == Path("list.txt")

    def test_options(self):
        args = create_cli().parse_args(
            ["--batch-size", "10", "--stop-on-first-match", "--no-pragmas", "-v"]
        )

        assert args.batch_size == 10
        assert args.stop_on_first_match is True
        assert args.apply_pragmas is False
        assert args.verbose is True

    def test_help_mentions_exit_codes(self):
        help_text = create_cli().format_help()

        assert "Exit code" in help_text


class TestMain:
    """End-to-end runs through main()."""

    def test_found_exits_1(self, reference_db, write_candidates, capsys):
        """Blank lines are ignored; one match means exit 1."""
        candidates = write_candidates([GENESIS_ADDRESS, "", "  ", UNKNOWN_ADDRESS])

        code = main([str(reference_db), str(candidates)])

        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == ""
        assert "Found 1 address(es) in database" in captured.err
        assert f"  → {GENESIS_ADDRESS}" in captured.err
        assert UNKNOWN_ADDRESS not in captured.err

    def test_none_found_exits_0(self, reference_db, write_candidates, capsys):
        candidates = write_candidates([UNKNOWN_ADDRESS])

        code = main([str(reference_db), str(candidates)])

        captured = capsys.readouterr()
        assert code == 0
        assert captured.out == ""
        assert "No addresses found in database" in captured.err

    def test_empty_input_exits_0(self, reference_db, write_candidates, capsys):
        candidates = write_candidates(["", "   "])

        assert main([str(reference_db), str(candidates)]) == 0
        assert "No addresses found" in capsys.readouterr().err

    def test_empty_reference_set_exits_0(self, make_reference_db, write_candidates):
        db = make_reference_db([], name="empty.db")
        candidates = write_candidates([GENESIS_ADDRESS, UNKNOWN_ADDRESS])

        assert main([str(db), str(candidates)]) == 0

    def test_missing_store_exits_2(self, tmp_path, write_candidates, capsys):
        """The diagnostic names the missing path and nothing else is reported."""
        db = tmp_path / "missing.db"
        candidates = write_candidates([GENESIS_ADDRESS])

        code = main([str(db), str(candidates)])

        captured = capsys.readouterr()
        assert code == 2
        assert captured.out == ""
        assert str(db) in captured.err
        assert captured.err.startswith("Error:")
        assert "Found" not in captured.err
        assert len(captured.err.strip().splitlines()) == 1

    def test_missing_candidates_exits_2(self, reference_db, tmp_path, capsys):
        candidates = tmp_path / "missing.txt"

        assert main([str(reference_db), str(candidates)]) == 2
        assert str(candidates) in capsys.readouterr().err

    def test_undecodable_candidates_exits_2(self, reference_db, tmp_path, capsys):
        """A bad line anywhere fails the run, even after matches were found."""
        candidates = tmp_path / "bad.txt"
        candidates.write_bytes(GENESIS_ADDRESS.encode() + b"\n\xff\xfe\n")

        code = main([str(reference_db), str(candidates), "--batch-size", "1"])

        err = capsys.readouterr().err
        assert code == 2
        assert "line 2" in err
        assert "Found" not in err

    def test_wrong_schema_exits_2(self, make_reference_db, write_candidates, capsys):
        db = make_reference_db(["a"], table="wallets")
        candidates = write_candidates(["a"])

        assert main([str(db), str(candidates)]) == 2
        assert "no such table" in capsys.readouterr().err

    def test_table_and_column_options(self, make_reference_db, write_candidates):
        db = make_reference_db(["a"], table="wallets", column="addr")
        candidates = write_candidates(["a"])

        assert main([str(db), str(candidates), "--table", "wallets", "--column", "addr"]) == 1

    def test_defaults_from_working_directory(self, reference_db, monkeypatch, capsys):
        """Without arguments the conventional file names are used."""
        workdir = reference_db.parent
        (workdir / "addressonly.txt").write_text(f"{GENESIS_ADDRESS}\n", encoding="utf-8")
        monkeypatch.chdir(workdir)

        assert main([]) == 1
        assert GENESIS_ADDRESS in capsys.readouterr().err

    def test_idempotent(self, reference_db, write_candidates, capsys):
        candidates = write_candidates([GENESIS_ADDRESS, UNKNOWN_ADDRESS])
        args = [str(reference_db), str(candidates)]

        first = main(args), capsys.readouterr().err
        second = main(args), capsys.readouterr().err

        assert first == second

    def test_stop_on_first_match(self, reference_db, write_candidates, capsys, sample_addresses):
        candidates = write_candidates(sample_addresses)

        code = main(
            [str(reference_db), str(candidates), "--batch-size", "1", "--stop-on-first-match"]
        )

        assert code == 1
        assert "Found 1 address(es)" in capsys.readouterr().err

    def test_env_batch_size(self, reference_db, write_candidates, monkeypatch):
        monkeypatch.setenv("ADDRESS_PROBE_BATCH_SIZE", "2")
        candidates = write_candidates([GENESIS_ADDRESS])

        assert main([str(reference_db), str(candidates)]) == 1

    def test_invalid_batch_size_exits_2(self, reference_db, write_candidates, capsys):
        candidates = write_candidates([GENESIS_ADDRESS])

        assert main([str(reference_db), str(candidates), "--batch-size", "0"]) == 2
        assert "batch_size" in capsys.readouterr().err

    def test_explicit_missing_config_exits_2(self, reference_db, write_candidates, tmp_path, capsys):
        candidates = write_candidates([GENESIS_ADDRESS])
        config = tmp_path / "nope.yaml"

        assert main(["-c", str(config), str(reference_db), str(candidates)]) == 2
        assert str(config) in capsys.readouterr().err

    @pytest.mark.parametrize(
        "body",
        [
            "store: refs.db\n",
            "checker:\n  batch_size: [1]\n",
            "store:\n  busy_timeout_seconds: null\n",
            "store:\n  pragmas:\n    page_size: '4096'\n",
        ],
    )
    def test_malformed_config_exits_2(self, reference_db, write_candidates, tmp_path, capsys, body):
        """A wrongly typed config value is an error, never a 'found' exit."""
        candidates = write_candidates([GENESIS_ADDRESS])
        config = tmp_path / "address_probe_conf.yaml"
        config.write_text(body)

        assert main(["-c", str(config), str(reference_db), str(candidates)]) == 2
        err = capsys.readouterr().err
        assert err.startswith("Error:")
        assert len(err.strip().splitlines()) == 1

    def test_config_file(self, reference_db, write_candidates, tmp_path):
        """Paths can come from a config file."""
        candidates = write_candidates([GENESIS_ADDRESS])
        config = tmp_path / "probe.yaml"
        config.write_text(f"store:\n  path: '{reference_db}'\ncandidates_path: '{candidates}'\n")

        assert main(["-c", str(config)]) == 1

    def test_init_config(self, tmp_path, capsys):
        config = tmp_path / "address_probe.yaml"

        assert main(["--init-config", "-c", str(config)]) == 0
        assert config.exists()

        assert main(["--init-config", "-c", str(config)]) == 2
        assert "already exists" in capsys.readouterr().err


class TestReport:
    """Tests for report formatting and outcome selection."""

    def test_format_matches(self):
        assert format_report(["a", "b"]) == [
            "✓ Found 2 address(es) in database:",
            "  → a",
            "  → b",
        ]

    def test_format_none(self):
        assert format_report([]) == ["✗ No addresses found in database"]

    def test_format_error_single_line(self):
        error = OpenError("/data/refs.db", "no such file\nor directory")

        assert format_error(error) == (
            "Error: Cannot open database '/data/refs.db': no such file or directory"
        )

    def test_select_outcome(self):
        assert select_outcome(CheckResult()) == Outcome.CLEAN
        assert select_outcome(CheckResult(matches=["a"])) == Outcome.FOUND

    def test_outcome_exit_codes(self):
        assert (int(Outcome.CLEAN), int(Outcome.FOUND), int(Outcome.ERROR)) == (0, 1, 2)

    def test_write_report_to_stream(self, tmp_path):
        path = tmp_path / "report.txt"
        with open(path, "w", encoding="utf-8") as stream:
            write_report(["a"], stream)

        assert path.read_text(encoding="utf-8").splitlines() == [
            "✓ Found 1 address(es) in database:",
            "  → a",
        ]

    @pytest.mark.parametrize("matches", [[], ["a"]])
    def test_write_report_defaults_to_stderr(self, matches, capsys):
        write_report(matches)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err
