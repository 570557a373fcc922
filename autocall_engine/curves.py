import numpy as np
from abc import ABC, abstractmethod
from typing import Optional
from scipy.interpolate import RegularGridInterpolator
from .errors import DomainError, ConfigurationError


class YieldCurve(ABC):
    """
    Continuously compounded yield term structure.
    Times are year fractions measured from the settlement date.
    """

    def __init__(self, max_time: Optional[float] = None):
        #None means the curve extrapolates without limit
        self.max_time=max_time

    def _check_time(self, t):
        t=np.asarray(t, dtype=float)
        if np.any(t<0.0):
            raise DomainError(f"negative time {t} requested from {type(self).__name__}")
        if self.max_time is not None and np.any(t>self.max_time+1e-12):
            raise DomainError(f"time {t} is beyond the curve's last date ({self.max_time})")
        return t

    @abstractmethod
    def zero_rate(self, t):
        """Continuously compounded zero rate for maturity t."""
        pass

    def discount(self, t):
        t=self._check_time(t)
        return np.exp(-self.zero_rate(t)*t)

    def forward_rate(self, t1: float, t2: float) -> float:
        """Continuously compounded forward rate over [t1, t2]."""
        if t2<=t1:
            raise DomainError(f"forward period [{t1}, {t2}] is empty")
        return float(np.log(self.discount(t1)/self.discount(t2))/(t2-t1))


class FlatCurve(YieldCurve):
    def __init__(self, rate: float):
        super().__init__(max_time=None)
        self.rate=rate

    def zero_rate(self, t):
        t=self._check_time(t)
        return np.full_like(t, self.rate)


class ZeroCurve(YieldCurve):
    """
    Zero rates linearly interpolated between pillar times, flat before the first pillar.
    Queries beyond the last pillar raise DomainError unless extrapolation is allowed.
    """

    def __init__(self, times, rates, allow_extrapolation: bool = False):
        times=np.asarray(times, dtype=float)
        rates=np.asarray(rates, dtype=float)
        if times.ndim!=1 or times.shape!=rates.shape or len(times)<1:
            raise ConfigurationError("zero curve needs matching one-dimensional times and rates")
        if np.any(np.diff(times)<=0.0) or times[0]<0.0:
            raise ConfigurationError("zero curve pillar times must be non-negative and strictly increasing")

        super().__init__(max_time=None if allow_extrapolation else float(times[-1]))
        self.times=times
        self.rates=rates

    def zero_rate(self, t):
        t=self._check_time(t)
        return np.interp(t, self.times, self.rates)


class VolatilitySurface(ABC):
    """Black volatility as a function of expiry time and strike."""

    @abstractmethod
    def black_vol(self, t: float, strike: float) -> float:
        pass

    def black_variance(self, t: float, strike: float) -> float:
        return self.black_vol(t, strike)**2.0*t


class ConstantVol(VolatilitySurface):
    def __init__(self, sigma: float):
        if sigma<0.0:
            raise ConfigurationError(f"volatility must be non-negative, got {sigma}")
        self.sigma=sigma

    def black_vol(self, t: float, strike: float) -> float:
        if t<0.0:
            raise DomainError(f"negative expiry {t} requested from constant volatility")
        return self.sigma


class BlackVarianceSurface(VolatilitySurface):
    """
    Volatility grid over (expiry, strike), interpolated bilinearly in total variance sigma^2*T.
    Below the first expiry the total variance is scaled linearly from zero.
    Strikes outside the grid and expiries after the last one raise DomainError.
    """

    def __init__(self, maturities, strikes, vols):
        maturities=np.asarray(maturities, dtype=float)
        strikes=np.asarray(strikes, dtype=float)
        vols=np.asarray(vols, dtype=float)   #shape (n_maturities, n_strikes)

        if vols.shape!=(len(maturities), len(strikes)):
            raise ConfigurationError(f"vol grid shape {vols.shape} does not match "
                                     f"({len(maturities)}, {len(strikes)})")
        if np.any(maturities<=0.0) or np.any(np.diff(maturities)<=0.0):
            raise ConfigurationError("surface maturities must be positive and strictly increasing")
        if np.any(np.diff(strikes)<=0.0):
            raise ConfigurationError("surface strikes must be strictly increasing")

        self.maturities=maturities
        self.strikes=strikes
        total_variance=vols**2.0*maturities[:, None]
        self._interp=RegularGridInterpolator((maturities, strikes), total_variance, method="linear")

    def black_vol(self, t: float, strike: float) -> float:
        if not (self.strikes[0]<=strike<=self.strikes[-1]):
            raise DomainError(f"strike {strike} outside surface range "
                              f"[{self.strikes[0]}, {self.strikes[-1]}]")
        if t<=0.0 or t>self.maturities[-1]:
            raise DomainError(f"expiry {t} outside surface range (0, {self.maturities[-1]}]")

        t_query=max(t, self.maturities[0])
        w=float(self._interp([[t_query, strike]])[0])
        if t<self.maturities[0]:
            w*=t/self.maturities[0]
        return float(np.sqrt(w/t))
