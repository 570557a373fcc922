from abc import ABC, abstractmethod
import numpy as np
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple
from .curves import YieldCurve, VolatilitySurface
from .errors import ConfigurationError, GridMismatchError


@dataclass(frozen=True)
class MarketInputs:
    """Read-only market state shared by the process and the path pricer."""
    spot: float                        #Initial underlying quote S(0)
    discount_curve: YieldCurve         #OIS/risk-free curve, drives the risk-neutral drift
    dividend_curve: YieldCurve         #Dividend/repo yield q(t)
    bond_curve: YieldCurve             #Issuer curve used to discount the note's cash flows
    volatility: VolatilitySurface      #Black vol surface (or constant) for the lognormal model


@dataclass(frozen=True)
class ObservationWindow:
    """Autocall observation window, times in year fractions from settlement."""
    start: float
    end: float
    trigger: float    #Price level that calls the note
    coupon: float     #Amount paid on top of notional when called


@dataclass(frozen=True)
class TerminalRule:
    """
    Final barrier test. At or above `barrier` the note repays notional plus `coupon`,
    below it repays notional*max(protection, participation*level/strike).
    """
    barrier_time: float
    barrier: float
    coupon: float = 0.0
    participation: float = 1.0
    protection: float = 0.0


@dataclass(frozen=True)
class ContractTerms:
    strike: float
    notional: float
    settlement_date: date
    maturity: float
    windows: Tuple[ObservationWindow, ...]
    terminal: TerminalRule

    def __post_init__(self):
        #Accept any sequence, store an immutable tuple
        object.__setattr__(self, "windows", tuple(self.windows))

    def validate(self) -> None:
        """Raises ConfigurationError if the schedule or amounts are inconsistent."""
        if self.strike<=0.0:
            raise ConfigurationError(f"strike must be > 0, got {self.strike}")
        if self.notional<=0.0:
            raise ConfigurationError(f"notional must be > 0, got {self.notional}")
        if self.maturity<=0.0:
            raise ConfigurationError(f"maturity must be > 0, got {self.maturity}")

        previous_end=None
        for i, window in enumerate(self.windows):
            if window.start<0.0 or window.start>window.end:
                raise ConfigurationError(f"window {i} has start {window.start} after end {window.end}")
            if previous_end is not None and window.start<=previous_end:
                raise ConfigurationError(f"window {i} starts at {window.start}, "
                                         f"not after the previous window end {previous_end}")
            if window.end>self.maturity:
                raise ConfigurationError(f"window {i} ends at {window.end}, after maturity {self.maturity}")
            previous_end=window.end

        barrier_time=self.terminal.barrier_time
        if barrier_time>self.maturity or barrier_time<=0.0:
            raise ConfigurationError(f"barrier time {barrier_time} must lie in (0, {self.maturity}]")
        if previous_end is not None and barrier_time<previous_end:
            raise ConfigurationError(f"barrier time {barrier_time} precedes the last window end {previous_end}")

    def observation_times(self) -> np.ndarray:
        """Every time the simulation grid has to hit exactly."""
        times=[w.end for w in self.windows]+[self.terminal.barrier_time, self.maturity]
        return np.unique(np.asarray(times, dtype=float))


class TimeGrid:
    """Strictly increasing simulation times starting at 0 (the settlement date)."""

    def __init__(self, times):
        times=np.array(times, dtype=float)
        if times.ndim!=1 or len(times)<2:
            raise ConfigurationError("time grid needs at least two points")
        if times[0]!=0.0:
            raise ConfigurationError(f"time grid must start at 0, got {times[0]}")
        if np.any(np.diff(times)<=0.0):
            raise ConfigurationError("time grid must be strictly increasing")
        self.times=times
        self.times.setflags(write=False)

    @classmethod
    def regular(cls, end: float, steps: int) -> "TimeGrid":
        if steps<=0:
            raise ConfigurationError(f"steps must be > 0, got {steps}")
        if end<=0.0:
            raise ConfigurationError(f"grid end must be > 0, got {end}")
        return cls(np.linspace(0.0, end, steps+1))

    @classmethod
    def with_mandatory_times(cls, mandatory, steps: int) -> "TimeGrid":
        """
        Builds a grid of roughly `steps` steps up to the last mandatory time which contains
        every mandatory time exactly. Each interval between consecutive mandatory times is
        cut into max(1, round(length/dt_max)) equal sub-steps, with dt_max=end/steps.
        """
        if steps<=0:
            raise ConfigurationError(f"steps must be > 0, got {steps}")
        mandatory=np.unique(np.asarray(mandatory, dtype=float))
        if len(mandatory)==0 or mandatory[0]<0.0:
            raise ConfigurationError("mandatory times must be non-negative and non-empty")
        end=mandatory[-1]
        if end<=0.0:
            raise ConfigurationError("grid end must be > 0")

        dt_max=end/steps
        times=[np.zeros(1)]
        period_begin=0.0
        for period_end in mandatory:
            if period_end==0.0:
                continue
            n=max(int(round((period_end-period_begin)/dt_max)), 1)
            #linspace hits period_end exactly
            times.append(np.linspace(period_begin, period_end, n+1)[1:])
            period_begin=period_end
        return cls(np.concatenate(times))

    @property
    def steps(self) -> int:
        return len(self.times)-1

    @property
    def end(self) -> float:
        return float(self.times[-1])

    @property
    def dt(self) -> np.ndarray:
        return np.diff(self.times)

    def index(self, t: float) -> int:
        """Grid position of t, GridMismatchError if t is not a grid point."""
        hits=np.flatnonzero(np.isclose(self.times, t, rtol=0.0, atol=1e-10))
        if hits.size==0:
            raise GridMismatchError(f"time {t} is not on the simulation grid "
                                    f"({self.steps} steps up to {self.end})")
        return int(hits[0])

    def __len__(self) -> int:
        return len(self.times)

    def __getitem__(self, i):
        return self.times[i]


@dataclass(frozen=True)
class SimulatedPath:
    """One simulated trajectory indexed by TimeGrid position."""
    times: np.ndarray
    levels: np.ndarray
    variances: Optional[np.ndarray] = field(default=None)

    def __len__(self) -> int:
        return len(self.levels)


class StochasticProcess(ABC):
    """
    Abstract diffusion dx=drift(t,x)dt+diffusion(t,x)dW over a state vector x of `size`
    components driven by `factors` independent Brownian motions.
    States are arrays whose last axis is the state dimension; leading axes are paths.
    """
    size: int = 1
    factors: int = 1

    @abstractmethod
    def initial_values(self) -> np.ndarray:
        pass

    @abstractmethod
    def drift(self, t: float, x: np.ndarray, dt: Optional[float] = None) -> np.ndarray:
        pass

    @abstractmethod
    def diffusion(self, t: float, x: np.ndarray) -> np.ndarray:
        """Matrix of shape (..., size, factors)."""
        pass

    def evolve(self, t: float, x: np.ndarray, dt: float, dw: np.ndarray) -> np.ndarray:
        """Euler step: x(t+dt)=x(t)+drift*dt+diffusion@dw, with dw=sqrt(dt)*Z."""
        return x+self.drift(t, x, dt)*dt+np.einsum("...ij,...j->...i", self.diffusion(t, x), dw)

    @abstractmethod
    def levels(self, x: np.ndarray) -> np.ndarray:
        """Underlying level of each state."""
        pass

    def variances(self, x: np.ndarray) -> Optional[np.ndarray]:
        """Instantaneous variance of each state, None for deterministic-volatility models."""
        return None


class PathPricer(ABC):
    """Maps one simulated path to a discounted sample value."""

    @abstractmethod
    def __call__(self, path: SimulatedPath) -> float:
        pass
