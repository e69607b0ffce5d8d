"""
Loss Functions
==============

Per-example losses over an output vector and an expected vector.

Each loss implements:
- forward(output, expected): scalar loss
- backward(output, expected): gradient of the loss w.r.t. output (same length)

The network adds the L2 regulariser on top of these; the losses themselves
never see the weights.
"""

import numpy as np

from .errors import DimensionMismatch


def _as_vectors(output, expected, name):
    output = np.asarray(output, dtype=np.float64).reshape(-1)
    expected = np.asarray(expected, dtype=np.float64).reshape(-1)
    if output.shape != expected.shape:
        raise DimensionMismatch(
            f"{name}: output length {output.size} must match expected length {expected.size}"
        )
    return output, expected


class Loss:
    """Base class for loss functions."""

    def forward(self, output, expected):
        """Compute loss value."""
        raise NotImplementedError

    def backward(self, output, expected):
        """Compute gradient of loss w.r.t. output."""
        raise NotImplementedError

    def __call__(self, output, expected):
        return self.forward(output, expected)

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class MeanSquaredError(Loss):
    """
    Mean Squared Error for regression.

    Formula: L = (1/n) * sum((expected - output)^2)

    Gradient: dL/d output = -(2/n) * (expected - output)
    """

    def forward(self, output, expected):
        output, expected = _as_vectors(output, expected, 'MeanSquaredError')
        return float(np.sum((expected - output) ** 2) / output.size)

    def backward(self, output, expected):
        output, expected = _as_vectors(output, expected, 'MeanSquaredError')
        return -2.0 * (expected - output) / output.size


class CrossEntropy(Loss):
    """
    Cross-Entropy for classification with a softmax output.

    Formula: L = -sum(expected * log(output + epsilon))

    The gradient returned is output - expected, which is the gradient w.r.t.
    the softmax input when the output transform is Softmax.

    Args:
        epsilon: Added inside the log to keep it finite at output = 0
            (default: 0.01)
    """

    def __init__(self, epsilon=0.01):
        self.epsilon = epsilon

    def forward(self, output, expected):
        output, expected = _as_vectors(output, expected, 'CrossEntropy')
        return float(-np.sum(expected * np.log(output + self.epsilon)))

    def backward(self, output, expected):
        output, expected = _as_vectors(output, expected, 'CrossEntropy')
        return output - expected

    def __repr__(self):
        return f"CrossEntropy(epsilon={self.epsilon})"


# ============================================================================
# Loss Registry
# ============================================================================

LOSSES = {
    'cross_entropy': CrossEntropy,
    'crossentropy': CrossEntropy,
    'ce': CrossEntropy,
    'mse': MeanSquaredError,
    'mean_squared_error': MeanSquaredError,
}


def get_loss(name):
    """
    Get loss function by name.

    Args:
        name: String name or Loss instance

    Returns:
        Loss instance
    """
    if isinstance(name, Loss):
        return name

    name_lower = name.lower().replace('-', '_').replace(' ', '_')
    if name_lower not in LOSSES:
        available = ', '.join(sorted(set(LOSSES.keys())))
        raise ValueError(f"Unknown loss '{name}'. Available: {available}")

    return LOSSES[name_lower]()
