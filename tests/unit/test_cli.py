"""
Unit Tests for the Operator CLI

Reliability Level: SOVEREIGN TIER
Python 3.8 Compatible

Tests the m-ext command line:
- preview-sync and quote print JSON and exit 0
- Engine and configuration errors exit 1
"""

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from m_ext.main import main


ONE = "1000000000000"


class TestPreviewSync:
    """Tests for the preview-sync command."""

    def test_fee_free_growth(self, capsys) -> None:
        code = main([
            "preview-sync", "--last-derived", ONE, "--last-source", ONE,
            "--new-source", "1125000000000",
        ])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output == {"derived_index": 1_125_000_000_000, "multiplier": 1.125, "changed": True}

    def test_noop_sync(self, capsys) -> None:
        code = main([
            "preview-sync", "--last-derived", ONE, "--last-source", "1125000000000",
            "--new-source", "1125000000000", "--fee-bps", "500", "--power-mode", "float",
        ])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["changed"] is False

    def test_invalid_input_exits_1(self, capsys) -> None:
        code = main([
            "preview-sync", "--last-derived", ONE, "--last-source", "1125000000000",
            "--new-source", ONE,
        ])

        assert code == 1
        assert "[EXT-010]" in capsys.readouterr().err


class TestQuote:
    """Tests for the quote command."""

    def test_wrap_quote(self, capsys) -> None:
        code = main([
            "--correlation-id", "CID-CLI",
            "quote", "--operation", "wrap", "--principal", "1000000",
            "--source-index", "1050000000000", "--ext-index", ONE,
        ])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["quote"] == 1_050_000
        assert output["exact_out"] is False

    def test_exact_out_quote(self, capsys) -> None:
        code = main([
            "quote", "--operation", "wrap", "--principal", "8", "--exact-out",
            "--source-index", "1500000000000", "--ext-index", "1200000000000",
        ])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["quote"] == 7


class TestShowConfig:
    """Tests for the show-config command."""

    def test_prints_settings(self, capsys, monkeypatch) -> None:
        monkeypatch.setenv("EXT_YIELD_VARIANT", "none")
        monkeypatch.setenv("EXT_FEE_BPS", "0")
        monkeypatch.setenv("EXT_POWER_MODE", "decimal")
        monkeypatch.setenv("EXT_JOURNAL_ENABLED", "false")

        assert main(["show-config"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["yield_variant"] == "none"
        assert output["journal_enabled"] is False

    def test_invalid_settings_exit_1(self, capsys, monkeypatch) -> None:
        monkeypatch.setenv("EXT_YIELD_VARIANT", "staking")
        assert main(["show-config"]) == 1
        assert "EXT-CFG-001" in capsys.readouterr().err

    def test_missing_command_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
