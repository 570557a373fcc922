import math
from typing import Iterable


class RunningStatistics:
    """
    Streaming mean/variance accumulator (Welford's update).
    m2 is the running sum of squared deviations from the current mean, so no
    sum-of-squares cancellation occurs at large sample counts.
    """

    def __init__(self):
        self.count=0
        self.mean=0.0
        self.m2=0.0
        self.min=math.inf
        self.max=-math.inf

    def add(self, value: float) -> None:
        self.count+=1
        delta=value-self.mean
        self.mean+=delta/self.count
        self.m2+=delta*(value-self.mean)
        self.min=min(self.min, value)
        self.max=max(self.max, value)

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.add(value)

    def merge(self, other: "RunningStatistics") -> "RunningStatistics":
        """Combines two disjoint sample sets (Chan et al. parallel formula) into a new accumulator."""
        merged=RunningStatistics()
        n=self.count+other.count
        if n==0:
            return merged

        delta=other.mean-self.mean
        merged.count=n
        merged.mean=self.mean+delta*other.count/n
        merged.m2=self.m2+other.m2+delta**2.0*self.count*other.count/n
        merged.min=min(self.min, other.min)
        merged.max=max(self.max, other.max)
        return merged

    @property
    def variance(self) -> float:
        """Unbiased sample variance, 0 below two samples."""
        if self.count<2:
            return 0.0
        return self.m2/(self.count-1)

    @property
    def standard_deviation(self) -> float:
        return math.sqrt(self.variance)

    @property
    def standard_error(self) -> float:
        """Standard error of the mean, sqrt(variance/count)."""
        if self.count==0:
            return math.inf
        return math.sqrt(self.variance/self.count)

    def __repr__(self) -> str:
        return (f"RunningStatistics(count={self.count}, mean={self.mean:.6f}, "
                f"standard_error={self.standard_error:.6f})")
