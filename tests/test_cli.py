"""Tests for the command-line interface"""

import argparse
import json
import os

import pytest

from bioreport.cli.main import create_parser, main, parse_data_types
from bioreport.core.data_types import DataTypes


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)


class TestParser:
    def test_mode_is_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--rank", "--run"])

    def test_defaults(self):
        args = create_parser().parse_args(["--rank"])

        assert args.require == DataTypes(eeg=True, ppg=True)
        assert args.budget == 10
        assert args.profile == "strict"
        assert args.language == "ko"

    def test_parse_data_types(self):
        assert parse_data_types("eeg, ACC") == DataTypes(eeg=True, acc=True)

        with pytest.raises(argparse.ArgumentTypeError):
            parse_data_types("eeg,ecg")


class TestMain:
    def test_list_engines_with_mock(self, capsys):
        assert main(["--list-engines", "--with-mock"]) == 0

        assert "mock-test-v1" in capsys.readouterr().out

    def test_list_engines_without_any(self, capsys):
        assert main(["--list-engines"]) == 1

        assert "GOOGLE_API_KEY" in capsys.readouterr().out

    def test_rank(self, capsys):
        assert main(["--rank", "--with-mock", "--require", "eeg,ppg", "--budget", "5"]) == 0

        out = capsys.readouterr().out
        assert "mock-test-v1" in out
        assert "score" in out

    def test_fake_run_writes_report(self, tmp_path, capsys):
        code = main([
            "--run", "--fake", "--seed", "1",
            "--stability-seconds", "1", "--duration", "2", "--tick-interval", "0.01",
            "--engine", "mock-test-v1", "--language", "en",
            "--report-dir", str(tmp_path),
        ])

        assert code == 0
        files = [name for name in os.listdir(tmp_path) if name.endswith(".json")]
        assert len(files) == 1
        with open(tmp_path / files[0], encoding="utf-8") as f:
            record = json.load(f)
        assert record["stage"] == "COMPLETED"
        assert record["engine_id"] == "mock-test-v1"
        assert set(record["rendered"]) == {"html", "json"}
        assert "Report" in capsys.readouterr().out

    def test_run_with_unknown_engine_fails(self, tmp_path):
        code = main([
            "--run", "--fake", "--seed", "1",
            "--stability-seconds", "1", "--duration", "1", "--tick-interval", "0.01",
            "--engine", "missing-engine", "--report-dir", str(tmp_path),
        ])

        assert code == 1
