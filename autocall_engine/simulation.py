import logging
import time
import numpy as np
from dataclasses import dataclass
from typing import Optional
from scipy.stats import norm
from .base import MarketInputs, ContractTerms, TimeGrid
from .sde import ModelKind, HestonParams, build_process
from .random_streams import PseudoRandomStream, SobolStream
from .generator import PathGenerator
from .payoff import AutocallablePathPricer
from .engine import MonteCarloEngine
from .statistics import RunningStatistics
from .config import SimulationSettings
from .errors import ConfigurationError

logger=logging.getLogger(__name__)


@dataclass(frozen=True)
class PricingResult:
    price: float
    standard_error: float
    samples: int
    steps: int            #Actual grid steps, may differ slightly from the requested count
    model: ModelKind
    seed: Optional[int]
    elapsed: float        #Wall-clock seconds

    def confidence_interval(self, level: float = 0.95) -> tuple[float, float]:
        z=float(norm.ppf(0.5+level/2.0))
        return (self.price-z*self.standard_error, self.price+z*self.standard_error)

    def relative_error(self, reference: float) -> float:
        """|1 - price/reference|, for comparing against a market quotation."""
        return abs(1.0-self.price/reference)


class AutocallableSimulation:
    """
    Owns the contract and market inputs and wires process -> generator -> path pricer -> engine.
    The settlement date is the origin of every simulation time; nothing is read from global state.
    """

    def __init__(self, market: MarketInputs, terms: ContractTerms, settings: Optional[SimulationSettings] = None):
        self.market=market
        self.terms=terms
        self.settings=settings if settings is not None else SimulationSettings()

    def build_grid(self, steps: int) -> TimeGrid:
        """Grid of about `steps` steps containing every window end, the barrier time and maturity."""
        return TimeGrid.with_mandatory_times(self.terms.observation_times(), steps)

    def _prepare(self, steps: int, samples: int, model, heston: Optional[HestonParams], seed: Optional[int]):
        #All validation happens before any simulation work
        kind=ModelKind.parse(model)
        if steps<=0:
            raise ConfigurationError(f"steps must be > 0, got {steps}")
        if samples<=0:
            raise ConfigurationError(f"samples must be > 0, got {samples}")
        self.terms.validate()
        if heston is not None:
            heston.validate()

        grid=self.build_grid(steps)
        process=build_process(kind, self.market, self.terms, heston)

        stream_type=SobolStream if self.settings.sobol else PseudoRandomStream
        stream=stream_type(process.factors*grid.steps, seed)

        generator=PathGenerator(process, grid, stream, batch_size=min(self.settings.batch_size, samples))
        evaluator=AutocallablePathPricer(self.terms, self.market, grid)
        engine=MonteCarloEngine(antithetic=self.settings.antithetic)
        return kind, grid, generator, evaluator, engine

    def compute(self,
                steps: Optional[int] = None,
                samples: Optional[int] = None,
                model=ModelKind.LOGNORMAL,
                heston: Optional[HestonParams] = None,
                seed: Optional[int] = None,
                cancel=None) -> PricingResult:
        """
        Prices the certificate with `samples` Monte Carlo paths over about `steps` time steps.
        The random stream is seeded once per call, so equal arguments give identical results.
        """
        steps=self.settings.steps if steps is None else steps
        samples=self.settings.samples if samples is None else samples
        seed=self.settings.seed if seed is None else seed

        kind, grid, generator, evaluator, engine=self._prepare(steps, samples, model, heston, seed)
        logger.info("pricing with %s model: %d samples, %d steps, seed %s",
                    kind.name.lower(), samples, grid.steps, seed)

        start=time.perf_counter()
        stats=engine.run(generator, evaluator, samples, cancel=cancel)
        elapsed=time.perf_counter()-start

        logger.info("price %.4f, standard error %.4f (%.2fs)", stats.mean, stats.standard_error, elapsed)
        return PricingResult(price=stats.mean, standard_error=stats.standard_error, samples=stats.count,
                             steps=grid.steps, model=kind, seed=seed, elapsed=elapsed)

    def convergence(self,
                    steps: Optional[int] = None,
                    samples: Optional[int] = None,
                    model=ModelKind.LOGNORMAL,
                    heston: Optional[HestonParams] = None,
                    seed: Optional[int] = None,
                    points: int = 20) -> np.ndarray:
        """
        Runs the same simulation as compute() in `points` chunks and records the running estimate.
        Returns an array of shape (points, 3) with columns (sample count, price, standard error).
        """
        steps=self.settings.steps if steps is None else steps
        samples=self.settings.samples if samples is None else samples
        seed=self.settings.seed if seed is None else seed
        if points<=0 or points>samples:
            raise ConfigurationError(f"points must lie in [1, {samples}], got {points}")

        _, _, generator, evaluator, engine=self._prepare(steps, samples, model, heston, seed)
        stats=RunningStatistics()
        checkpoints=np.linspace(0, samples, points+1).round().astype(int)

        history=np.empty((points, 3))
        for j in range(points):
            engine.run(generator, evaluator, int(checkpoints[j+1]-checkpoints[j]), statistics=stats)
            history[j]=(stats.count, stats.mean, stats.standard_error)
        return history
