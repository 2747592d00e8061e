"""
Unit Tests for Quoter

Reliability Level: SOVEREIGN TIER
Python 3.8 Compatible

Tests wrap / unwrap quotes and their vault-favouring rounding.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from m_ext.accounting.constants import INDEX_SCALE
from m_ext.logic.quoter import Quoter, WrapOperation


class TestQuotes:
    """Tests for exact-in and exact-out quotes."""

    def test_wrap_at_rebased_source(self) -> None:
        quoter = Quoter(source_index=1_050_000_000_000, conversion_index=INDEX_SCALE)
        assert quoter.exact_in(WrapOperation.WRAP, 1_000_000) == 1_050_000

    def test_unwrap_back(self) -> None:
        quoter = Quoter(source_index=1_050_000_000_000, conversion_index=INDEX_SCALE)
        assert quoter.exact_in(WrapOperation.UNWRAP, 1_050_000) == 1_000_000

    def test_exact_in_rounds_down(self) -> None:
        # 7 * 1.5 = 10.5 -> 10; 10 / 1.2 = 8.33 -> 8
        quoter = Quoter(source_index=1_500_000_000_000, conversion_index=1_200_000_000_000)
        assert quoter.quote(WrapOperation.WRAP, 7) == 8

    def test_exact_out_rounds_up(self) -> None:
        # 8 * 1.2 = 9.6 -> 10; 10 / 1.5 = 6.67 -> 7
        quoter = Quoter(source_index=1_500_000_000_000, conversion_index=1_200_000_000_000)
        assert quoter.quote(WrapOperation.WRAP, 8, exact_out=True) == 7

    def test_unwrap_exact_out_rounds_up(self) -> None:
        # 7 M out: 7 * 1.5 = 10.5 -> 11; 11 / 1.2 = 9.17 -> 10 ext in
        quoter = Quoter(source_index=1_500_000_000_000, conversion_index=1_200_000_000_000)
        assert quoter.exact_out(WrapOperation.UNWRAP, 7) == 10

    @pytest.mark.parametrize("principal", [1, 999, 123_456_789])
    def test_round_trip_never_profits(self, principal: int) -> None:
        quoter = Quoter(source_index=1_040_000_000_001, conversion_index=1_130_000_000_007)
        ext_out = quoter.exact_in(WrapOperation.WRAP, principal)
        assert quoter.exact_in(WrapOperation.UNWRAP, ext_out) <= principal

    def test_identity_indices(self) -> None:
        quoter = Quoter(source_index=INDEX_SCALE, conversion_index=INDEX_SCALE)
        assert quoter.exact_in(WrapOperation.WRAP, 55) == 55
        assert quoter.exact_out(WrapOperation.WRAP, 55) == 55
