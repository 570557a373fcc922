import numpy as np
import warnings
from enum import Enum
from dataclasses import dataclass
from scipy.linalg import cholesky, eigh
from typing import Optional
from .base import StochasticProcess, MarketInputs, ContractTerms
from .errors import ConfigurationError

#Horizon used for instantaneous forward rates when no step size is given
_INSTANT_DT=1e-4


class ModelKind(Enum):
    """Closed set of supported dynamics, keyed by the console letter."""
    LOGNORMAL="B"
    HESTON="H"

    @classmethod
    def parse(cls, value) -> "ModelKind":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key=value.strip().upper()
            for kind in cls:
                if key in (kind.value, kind.name):
                    return kind
        raise ConfigurationError(f"unknown model kind {value!r}: expected 'B' (Black-Scholes) or 'H' (Heston)")


def nearest_corr_matrix(Omega: np.ndarray) -> np.ndarray:
    """Runs a single spectral projection step to find a
       positive definite proxy for an unrealisable correlation matrix"""

    eigen_values, eigen_vectors=eigh(Omega)
    eigen_values=np.maximum(eigen_values, 1e-8)

    Omega_pd=eigen_vectors@np.diag(eigen_values)@eigen_vectors.T

    inv_sqrt_diag=1.0/np.sqrt(np.diag(Omega_pd))
    return Omega_pd*np.outer(inv_sqrt_diag, inv_sqrt_diag)


def correlation_factor(Omega: np.ndarray) -> np.ndarray:
    """Lower Cholesky factor L with L@L.T=Omega, projecting Omega first if it is singular."""
    try:
        return cholesky(Omega, lower=True)
    except np.linalg.LinAlgError:
        warnings.warn("Correlation matrix is not positive definite, using spectral projection step", UserWarning)
        return cholesky(nearest_corr_matrix(Omega), lower=True)


def _carry(market: MarketInputs, t: float, dt: Optional[float]) -> float:
    """Risk-free minus dividend forward rate over [t, t+dt]."""
    t_end=t+(dt if dt else _INSTANT_DT)
    return market.discount_curve.forward_rate(t, t_end)-market.dividend_curve.forward_rate(t, t_end)


class LognormalProcess(StochasticProcess):
    """
    Black-Scholes-Merton dynamics in log-spot x=ln S:
        dx = (r(t) - q(t) - sigma^2/2) dt + sigma dW
    sigma is read once from the volatility surface at (maturity, strike) and held constant.
    """
    size=1
    factors=1

    def __init__(self, market: MarketInputs, maturity: float, strike: float):
        self.market=market
        #DomainError from the surface propagates to the caller
        self.sigma=float(market.volatility.black_vol(maturity, strike))

    def initial_values(self) -> np.ndarray:
        return np.array([np.log(self.market.spot)])

    def drift(self, t, x, dt=None):
        mu=_carry(self.market, t, dt)-0.5*self.sigma**2.0
        return np.full_like(x, mu, dtype=float)

    def diffusion(self, t, x):
        x=np.asarray(x)
        return np.full(x.shape[:-1]+(1, 1), self.sigma)

    def levels(self, x):
        return np.exp(x[..., 0])


@dataclass(frozen=True)
class HestonParams:
    v0: float       #Initial variance
    kappa: float    #Mean reversion speed
    theta: float    #Long-run variance
    sigma: float    #Volatility of variance
    rho: float      #Correlation between spot and variance shocks

    def validate(self) -> None:
        if self.v0<0.0:
            raise ConfigurationError(f"v0 must be >= 0, got {self.v0}")
        if self.kappa<=0.0:
            raise ConfigurationError(f"kappa must be > 0, got {self.kappa}")
        if self.theta<0.0:
            raise ConfigurationError(f"theta must be >= 0, got {self.theta}")
        if self.sigma<0.0:
            raise ConfigurationError(f"sigma must be >= 0, got {self.sigma}")
        if abs(self.rho)>1.0:
            raise ConfigurationError(f"rho must lie in [-1, 1], got {self.rho}")

    @property
    def feller_satisfied(self) -> bool:
        return 2.0*self.kappa*self.theta>self.sigma**2.0


#Parameters used by the original certificate pricing run
DEFAULT_HESTON=HestonParams(v0=0.0292, kappa=1.13, theta=0.191, sigma=0.74355254, rho=-0.58486121)


class HestonProcess(StochasticProcess):
    """
    Heston dynamics on the state (x=ln S, v):
        dx = (r(t) - q(t) - v/2) dt + sqrt(v) dW1
        dv = kappa (theta - v) dt + sigma sqrt(v) dW2,   dW1 dW2 = rho dt
    Variance is floored at zero: v+=max(v,0) is used in every drift and square root,
    and the stored variance is floored after each Euler step.
    """
    size=2
    factors=2

    def __init__(self, market: MarketInputs, params: HestonParams = DEFAULT_HESTON):
        params.validate()
        self.market=market
        self.params=params

        if params.sigma>0.0 and not params.feller_satisfied:
            warnings.warn(f"Feller condition 2*kappa*theta>sigma^2 violated "
                          f"({2.0*params.kappa*params.theta:.4f} <= {params.sigma**2.0:.4f}), "
                          f"variance floor will be active", UserWarning)

        rho=params.rho
        self.L=correlation_factor(np.array([[1.0, rho], [rho, 1.0]]))

    def initial_values(self) -> np.ndarray:
        return np.array([np.log(self.market.spot), self.params.v0])

    def drift(self, t, x, dt=None):
        x=np.asarray(x, dtype=float)
        v=np.maximum(x[..., 1], 0.0)
        out=np.empty_like(x)
        out[..., 0]=_carry(self.market, t, dt)-0.5*v
        out[..., 1]=self.params.kappa*(self.params.theta-v)
        return out

    def diffusion(self, t, x):
        x=np.asarray(x, dtype=float)
        sqrt_v=np.sqrt(np.maximum(x[..., 1], 0.0))
        scale=np.stack([sqrt_v, self.params.sigma*sqrt_v], axis=-1)
        #diag(scale)@L, batched over paths
        return scale[..., :, None]*self.L

    def evolve(self, t, x, dt, dw):
        x_next=super().evolve(t, x, dt, dw)
        x_next[..., 1]=np.maximum(x_next[..., 1], 0.0)
        return x_next

    def levels(self, x):
        return np.exp(x[..., 0])

    def variances(self, x):
        return x[..., 1]


def build_process(kind, market: MarketInputs, terms: ContractTerms,
                  heston: Optional[HestonParams] = None) -> StochasticProcess:
    """Instantiates the process variant selected by `kind`."""
    kind=ModelKind.parse(kind)
    if kind is ModelKind.LOGNORMAL:
        return LognormalProcess(market, terms.maturity, terms.strike)
    return HestonProcess(market, heston if heston is not None else DEFAULT_HESTON)
