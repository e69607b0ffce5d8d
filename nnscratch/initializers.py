"""
Weight Initialization
=====================

Initial weights are drawn from a normal distribution per layer:

    w ~ N(0, sigma^2),  sigma = 1 / fan_in

All layers share one random generator, so the sequence of draws depends only
on the seed and on the order of calls. With seed=None the generator is seeded
from OS entropy and runs are not reproducible.
"""

import numpy as np

from .errors import InvalidShape, OutOfRange


class Initializer:
    """
    Per-layer normal weight initializer.

    Args:
        fan_ins: Number of inputs feeding each layer, one entry per layer
        seed: Integer seed for reproducible draws, or None for entropy

    Example:
        >>> init = Initializer([4, 5], seed=1000)
        >>> w = init.sample(0)          # one draw from N(0, 1/4)
        >>> W = init.sample(1, (3, 5))  # 15 draws from N(0, 1/5)
    """

    def __init__(self, fan_ins, seed=None):
        fan_ins = [int(n) for n in fan_ins]
        if any(n <= 0 for n in fan_ins):
            raise InvalidShape(f"Fan-in sizes must be positive, got {fan_ins}")

        self.fan_ins = fan_ins
        self.seed = seed
        self.scales = [1.0 / n for n in fan_ins]
        self._rng = np.random.default_rng(seed)

    def sample(self, layer_index, size=None):
        """
        Draw from the distribution of one layer.

        Args:
            layer_index: Which layer's distribution to use
            size: None for a single float, or an int/shape for an array of
                that many successive draws (row-major)

        Returns:
            float, or ndarray of shape `size`
        """
        if not 0 <= layer_index < len(self.scales):
            raise OutOfRange(
                f"Layer index {layer_index} out of range for {len(self.scales)} layers"
            )

        scale = self.scales[layer_index]
        if size is None:
            return float(self._rng.normal(0.0, scale))
        return self._rng.normal(0.0, scale, size=size)

    def __len__(self):
        return len(self.scales)

    def __repr__(self):
        return f"Initializer(fan_ins={self.fan_ins}, seed={self.seed})"
