import numpy as np
from abc import ABC, abstractmethod
from scipy.stats import qmc
from scipy.special import ndtri
from typing import Optional
from .errors import ConfigurationError


class RandomStream(ABC):
    """
    Sequential source of independent standard normal vectors of fixed `dimension`.
    Each path consumes one vector, so drawing n vectors at once is the same as drawing them one by one.
    """

    def __init__(self, dimension: int, seed: Optional[int] = None):
        if dimension<=0:
            raise ConfigurationError(f"stream dimension must be > 0, got {dimension}")
        self.dimension=dimension
        self.seed=seed

    @abstractmethod
    def next_block(self, n: int) -> np.ndarray:
        """Returns the next n draws as an array of shape (n, dimension)."""
        pass


class PseudoRandomStream(RandomStream):
    def __init__(self, dimension: int, seed: Optional[int] = None):
        super().__init__(dimension, seed)
        self._rng=np.random.default_rng(seed)

    def next_block(self, n: int) -> np.ndarray:
        return self._rng.standard_normal((n, self.dimension))


class SobolStream(RandomStream):
    """
    Scrambled Sobol points mapped to standard normals through the inverse CDF.
    Scrambling keeps the points randomised so the sample standard error stays meaningful.
    Blocks should be powers of two to keep the balance properties of the sequence.
    """
    MAX_DIMENSION=21201

    def __init__(self, dimension: int, seed: Optional[int] = None):
        super().__init__(dimension, seed)
        if dimension>self.MAX_DIMENSION:
            raise ConfigurationError(f"Sobol sequences support at most {self.MAX_DIMENSION} dimensions, "
                                     f"got {dimension} (factors x steps); reduce the step count")
        self._sampler=qmc.Sobol(d=dimension, scramble=True, seed=seed)

    def next_block(self, n: int) -> np.ndarray:
        U=self._sampler.random(n)

        #Sobol points may sit on 0, clip before the inverse CDF
        eps=np.finfo(np.float64).eps
        return ndtri(np.clip(U, eps, 1.0-eps))
