import logging
import numpy as np
from typing import Optional, Tuple
from .base import StochasticProcess, TimeGrid, SimulatedPath
from .random_streams import RandomStream
from .errors import ConfigurationError

logger=logging.getLogger(__name__)


class PathGenerator:
    """
    Lazy, unbounded and non-restartable sequence of simulated paths.

    Path i consumes the i-th draw of the stream: factors x steps standard normals laid out
    step-major (Z[step, factor]), fed through the process's Euler step with dw=sqrt(dt)*Z.
    Paths are simulated in batches vectorised across paths; the batch size never changes
    which variates a given path receives.
    """

    def __init__(self, process: StochasticProcess, grid: TimeGrid, stream: RandomStream, batch_size: int = 256):
        expected=process.factors*grid.steps
        if stream.dimension!=expected:
            raise ConfigurationError(f"random stream dimension {stream.dimension} does not match "
                                     f"factors x steps = {process.factors} x {grid.steps}")
        if batch_size<=0:
            raise ConfigurationError(f"batch_size must be > 0, got {batch_size}")

        self.process=process
        self.grid=grid
        self.stream=stream
        self.batch_size=batch_size
        self._sqrt_dt=np.sqrt(grid.dt)

        self._draws=None
        self._batch=None
        self._mirror=None
        self._cursor=0
        self._last=-1

    def _simulate(self, Z: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Evolves a batch of states through the grid. Z shape: (n_paths, n_steps, factors)"""
        n_paths=Z.shape[0]
        n_steps=self.grid.steps
        times=self.grid.times
        dt=self.grid.dt

        x=np.tile(self.process.initial_values(), (n_paths, 1))
        levels=np.empty((n_paths, n_steps+1))
        levels[:, 0]=self.process.levels(x)

        v=self.process.variances(x)
        variances=None
        if v is not None:
            variances=np.empty((n_paths, n_steps+1))
            variances[:, 0]=v

        #Time evolution loop (vectorized across paths)
        for i in range(n_steps):
            x=self.process.evolve(times[i], x, dt[i], Z[:, i, :]*self._sqrt_dt[i])
            levels[:, i+1]=self.process.levels(x)
            if variances is not None:
                variances[:, i+1]=self.process.variances(x)

        return levels, variances

    def _refill(self) -> None:
        n=self.batch_size
        self._draws=self.stream.next_block(n).reshape(n, self.grid.steps, self.process.factors)
        self._batch=self._simulate(self._draws)
        self._mirror=None
        self._cursor=0
        logger.debug("simulated batch of %d paths over %d steps", n, self.grid.steps)

    def _path(self, batch, i: int) -> SimulatedPath:
        levels, variances=batch
        return SimulatedPath(times=self.grid.times,
                             levels=levels[i],
                             variances=None if variances is None else variances[i])

    def next(self) -> SimulatedPath:
        if self._batch is None or self._cursor>=self.batch_size:
            self._refill()
        self._last=self._cursor
        self._cursor+=1
        return self._path(self._batch, self._last)

    def antithetic(self) -> SimulatedPath:
        """Mirror of the path last returned by next(), driven by -Z."""
        if self._last<0:
            raise RuntimeError("antithetic() requires a preceding call to next()")
        if self._mirror is None:
            self._mirror=self._simulate(-self._draws)
        return self._path(self._mirror, self._last)

    def __iter__(self):
        return self

    def __next__(self) -> SimulatedPath:
        return self.next()
