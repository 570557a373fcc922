"""
Frozen simulation settings.

Defaults reproduce the original certificate run (seed 1234, 10000 time steps, 5000 samples)
and its reference quotation. Every integer setting can be overridden from the environment:

    AUTOCALL_SEED, AUTOCALL_STEPS, AUTOCALL_SAMPLES, AUTOCALL_BATCH_SIZE
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional
from .errors import ConfigurationError

_ENV_FIELDS={
    "AUTOCALL_SEED": "seed",
    "AUTOCALL_STEPS": "steps",
    "AUTOCALL_SAMPLES": "samples",
    "AUTOCALL_BATCH_SIZE": "batch_size",
}


@dataclass(frozen=True)
class SimulationSettings:
    """
    Attributes
    ----------
    seed : int
        Seed of the random stream, fixed once per compute() call
    steps : int
        Requested number of time steps up to maturity
    samples : int
        Number of Monte Carlo samples
    batch_size : int
        Paths simulated together by the generator (memory vs. speed only)
    antithetic : bool
        Average each path with its mirror path
    sobol : bool
        Use scrambled Sobol points instead of pseudo-random numbers
    reference_price : float
        Market quotation the console compares the estimate against
    """

    seed: int = 1234
    steps: int = 10000
    samples: int = 5000
    batch_size: int = 256
    antithetic: bool = False
    sobol: bool = False
    reference_price: float = 1005.32

    def __post_init__(self) -> None:
        for name in ("steps", "samples", "batch_size"):
            value=getattr(self, name)
            if value<=0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "SimulationSettings":
        """Defaults, then environment variables, then explicit keyword overrides."""
        environ=os.environ if environ is None else environ
        values={}
        for key, name in _ENV_FIELDS.items():
            raw=environ.get(key)
            if raw is None:
                continue
            try:
                values[name]=int(raw)
            except ValueError:
                raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
        values.update({k: v for k, v in overrides.items() if v is not None})
        return replace(cls(), **values)
