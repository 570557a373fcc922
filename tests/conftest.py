"""
Shared fixtures for the autocall_engine test suite.

- Degenerate market: zero rates/dividends/volatility, spot never moves
- Standard market: flat curves with realistic levels
- Single-window and three-window contracts
"""

from datetime import date

import pytest

from autocall_engine.base import ContractTerms, MarketInputs, ObservationWindow, TerminalRule
from autocall_engine.curves import ConstantVol, FlatCurve
from autocall_engine.sde import HestonParams

SETTLEMENT = date(2017, 4, 4)
STRIKE = 15.08
SPOT = 15.35
NOTIONAL = 1000.0
BOND_RATE = 0.02


@pytest.fixture
def degenerate_market() -> MarketInputs:
    """Zero rates, dividends and volatility; issuer curve still discounts."""
    return MarketInputs(
        spot=SPOT,
        discount_curve=FlatCurve(0.0),
        dividend_curve=FlatCurve(0.0),
        bond_curve=FlatCurve(BOND_RATE),
        volatility=ConstantVol(0.0),
    )


@pytest.fixture
def standard_market() -> MarketInputs:
    return MarketInputs(
        spot=SPOT,
        discount_curve=FlatCurve(0.01),
        dividend_curve=FlatCurve(0.03),
        bond_curve=FlatCurve(0.02),
        volatility=ConstantVol(0.25),
    )


@pytest.fixture
def single_window_terms() -> ContractTerms:
    """One call window at the strike paying a 50 coupon, barrier at maturity."""
    return ContractTerms(
        strike=STRIKE,
        notional=NOTIONAL,
        settlement_date=SETTLEMENT,
        maturity=1.5,
        windows=[ObservationWindow(start=0.88, end=0.9, trigger=STRIKE, coupon=50.0)],
        terminal=TerminalRule(barrier_time=1.5, barrier=STRIKE),
    )


@pytest.fixture
def three_window_terms() -> ContractTerms:
    return ContractTerms(
        strike=STRIKE,
        notional=NOTIONAL,
        settlement_date=SETTLEMENT,
        maturity=3.0,
        windows=[
            ObservationWindow(start=0.9, end=1.0, trigger=16.0, coupon=50.0),
            ObservationWindow(start=1.9, end=2.0, trigger=16.0, coupon=100.0),
            ObservationWindow(start=2.4, end=2.5, trigger=16.0, coupon=150.0),
        ],
        terminal=TerminalRule(barrier_time=2.95, barrier=STRIKE, coupon=200.0),
    )


@pytest.fixture
def frozen_heston() -> HestonParams:
    """Heston parameters with zero variance everywhere: the spot never moves."""
    return HestonParams(v0=0.0, kappa=1.0, theta=0.0, sigma=0.0, rho=0.0)
