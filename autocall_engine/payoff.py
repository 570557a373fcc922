from enum import Enum
from dataclasses import dataclass
from typing import Optional
from .base import PathPricer, ContractTerms, MarketInputs, TimeGrid, SimulatedPath
from .errors import GridMismatchError


class PathState(Enum):
    ALIVE="alive"       #Not called yet
    CALLED="called"     #Redeemed early on an observation window
    MATURED="matured"   #Survived every window, settled on the terminal barrier rule


@dataclass(frozen=True)
class PathOutcome:
    state: PathState
    window: Optional[int]     #Index of the calling window, None when matured
    payment_time: float
    cash_flow: float          #Undiscounted amount
    value: float              #Cash flow discounted to settlement on the bond curve


class AutocallablePathPricer(PathPricer):
    """
    Prices an autocallable certificate on a single simulated path.

    Windows are checked in ascending order on the level at each window's end time.
    The first window with level>=trigger calls the note: notional plus that window's coupon
    is paid at the window end and no later window is examined. A path that is never called
    is settled at maturity against the level observed at the barrier time; a level equal to
    the barrier counts as at-or-above. Every cash flow is an issuer obligation and is
    discounted to settlement with the bond curve.
    """

    def __init__(self, terms: ContractTerms, market: MarketInputs, grid: TimeGrid):
        self.terms=terms
        self.n_points=len(grid)

        #Raises GridMismatchError if the grid misses any required time
        self.window_indices=[grid.index(w.end) for w in terms.windows]
        self.barrier_index=grid.index(terms.terminal.barrier_time)
        grid.index(terms.maturity)

        bond=market.bond_curve
        self.call_discounts=[float(bond.discount(w.end)) for w in terms.windows]
        self.maturity_discount=float(bond.discount(terms.maturity))

    def evaluate(self, path: SimulatedPath) -> PathOutcome:
        if len(path)!=self.n_points:
            raise GridMismatchError(f"path has {len(path)} points, pricer grid has {self.n_points}")

        levels=path.levels
        notional=self.terms.notional

        #ALIVE: look for the first window that calls the note
        for i, (window, idx) in enumerate(zip(self.terms.windows, self.window_indices)):
            if levels[idx]>=window.trigger:
                cash_flow=notional+window.coupon
                return PathOutcome(state=PathState.CALLED, window=i, payment_time=window.end,
                                   cash_flow=cash_flow, value=cash_flow*self.call_discounts[i])

        rule=self.terms.terminal
        level=levels[self.barrier_index]
        if level>=rule.barrier:
            cash_flow=notional+rule.coupon
        else:
            cash_flow=notional*max(rule.protection, rule.participation*level/self.terms.strike)

        return PathOutcome(state=PathState.MATURED, window=None, payment_time=self.terms.maturity,
                           cash_flow=float(cash_flow), value=float(cash_flow)*self.maturity_discount)

    def __call__(self, path: SimulatedPath) -> float:
        return self.evaluate(path).value
