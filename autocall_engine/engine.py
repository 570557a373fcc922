import logging
from typing import Optional
from .base import PathPricer
from .generator import PathGenerator
from .statistics import RunningStatistics
from .errors import ConfigurationError, SimulationCancelled

logger=logging.getLogger(__name__)


class MonteCarloEngine:
    """
    Draws paths from a generator, prices each one and folds the discounted values
    into running statistics. Always consumes the full requested sample count.

    With antithetic=True every sample is the average of a path and its mirror path,
    so each sample costs two path evaluations.
    """

    def __init__(self, antithetic: bool = False):
        self.antithetic=antithetic

    def run(self,
            generator: PathGenerator,
            evaluator: PathPricer,
            sample_count: int,
            statistics: Optional[RunningStatistics] = None,
            cancel=None) -> RunningStatistics:
        """
        `statistics` lets a caller keep adding samples to an existing accumulator.
        `cancel` is any object exposing is_set() (e.g. threading.Event), polled between samples.
        """
        if sample_count<=0:
            raise ConfigurationError(f"sample_count must be > 0, got {sample_count}")
        if statistics is None:
            statistics=RunningStatistics()

        for i in range(sample_count):
            if cancel is not None and cancel.is_set():
                raise SimulationCancelled(f"simulation cancelled after {i} of {sample_count} samples")

            value=evaluator(generator.next())
            if self.antithetic:
                value=0.5*(value+evaluator(generator.antithetic()))
            statistics.add(value)

        logger.debug("added %d samples: %r", sample_count, statistics)
        return statistics
