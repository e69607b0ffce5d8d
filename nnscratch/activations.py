"""
Activation Functions
====================

Element-wise non-linearities applied to a dense layer's pre-activation vector,
each paired with its derivative. The derivative is evaluated on the
pre-activation (not on the activation output), which is what backpropagation
multiplies into the incoming gradient.

Output transforms are applied once to the final layer's activations:
- Identity: raw activations (regression)
- Softmax: probability distribution (classification with cross-entropy)

Every activation implements:
- forward(x): f(x)
- backward(x): f'(x)
"""

import numpy as np


class Activation:
    """Base class for all activation functions."""

    def forward(self, x):
        """Apply activation function."""
        raise NotImplementedError

    def backward(self, x):
        """Compute derivative of activation w.r.t. input."""
        raise NotImplementedError

    def __call__(self, x):
        return self.forward(x)

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class Identity(Activation):
    """
    Identity activation: f(x) = x

    Used for regression output layers and as the default output transform.
    """

    def forward(self, x):
        return np.asarray(x, dtype=np.float64)

    def backward(self, x):
        return np.ones_like(x, dtype=np.float64)


class Step(Activation):
    """
    Unit step: f(x) = 1 if x > 0 else 0

    Its own derivative is zero almost everywhere, but it is mostly used as
    the derivative of ReLU.
    """

    def forward(self, x):
        return (np.asarray(x) > 0).astype(np.float64)

    def backward(self, x):
        return np.zeros_like(x, dtype=np.float64)


class Heaviside(Activation):
    """
    Shifted step: f(x) = 1 if x + a > 0 else 0

    Args:
        a: Shift applied before thresholding (default: 0)
    """

    def __init__(self, a=0.0):
        self.a = a

    def forward(self, x):
        return (np.asarray(x) + self.a > 0).astype(np.float64)

    def backward(self, x):
        return np.zeros_like(x, dtype=np.float64)

    def __repr__(self):
        return f"Heaviside(a={self.a})"


class ReLU(Activation):
    """
    Rectified Linear Unit: f(x) = max(0, x)

    Derivative:
        f'(x) = 1 if x > 0 else 0   (the Step function)
    """

    def forward(self, x):
        return np.maximum(0.0, x)

    def backward(self, x):
        return (np.asarray(x) > 0).astype(np.float64)


class LeakyReLU(Activation):
    """
    Leaky ReLU: f(x) = x if x > 0 else alpha * x

    Args:
        alpha: Slope for negative values (default: 0.01)
    """

    def __init__(self, alpha=0.01):
        self.alpha = alpha

    def forward(self, x):
        return np.where(x > 0, x, self.alpha * x)

    def backward(self, x):
        return np.where(x > 0, 1.0, self.alpha)

    def __repr__(self):
        return f"LeakyReLU(alpha={self.alpha})"


class Sigmoid(Activation):
    """
    Sigmoid: f(x) = 1 / (1 + exp(-x))

    Derivative:
        f'(x) = f(x) * (1 - f(x))
    """

    def forward(self, x):
        # Clip for numerical stability
        x_clipped = np.clip(x, -500, 500)
        return 1.0 / (1.0 + np.exp(-x_clipped))

    def backward(self, x):
        s = self.forward(x)
        return s * (1 - s)


class Tanh(Activation):
    """
    Hyperbolic Tangent: f(x) = tanh(x)

    Derivative:
        f'(x) = 1 - tanh(x)^2
    """

    def forward(self, x):
        return np.tanh(x)

    def backward(self, x):
        t = np.tanh(x)
        return 1 - t ** 2


class Softmax(Activation):
    """
    Softmax: f(x_i) = exp(x_i) / sum(exp(x_j))

    Only used as an output transform. The max is subtracted before exp to
    prevent overflow; this does not change the result.

    When paired with CrossEntropy, the loss gradient (output - expected) is
    already the gradient w.r.t. the softmax input, so the network does not
    chain through backward().
    """

    def forward(self, x):
        x = np.asarray(x, dtype=np.float64)
        exp_x = np.exp(x - np.max(x))
        return exp_x / np.sum(exp_x)

    def backward(self, x):
        """Full Jacobian: J[i,j] = s[i] * (delta[i,j] - s[j])."""
        s = self.forward(x)
        return np.diag(s) - np.outer(s, s)


# ====================================
# Registries
# ====================================

ACTIVATIONS = {
    'identity': Identity,
    'linear': Identity,
    'none': Identity,
    'relu': ReLU,
    'leaky_relu': LeakyReLU,
    'leakyrelu': LeakyReLU,
    'sigmoid': Sigmoid,
    'tanh': Tanh,
    'step': Step,
    'heaviside': Heaviside,
}

OUTPUT_FUNCTIONS = {
    'identity': Identity,
    'linear': Identity,
    'none': Identity,
    'softmax': Softmax,
}


def _lookup(registry, name, kind):
    name_lower = name.lower().replace('-', '_')
    if name_lower not in registry:
        available = ', '.join(registry.keys())
        raise ValueError(f"Unknown {kind} '{name}'. Available: {available}")
    return registry[name_lower]()


def get_activation(name):
    """
    Get activation function by name.

    Softmax is rejected: its derivative is a full Jacobian, so it can only
    be used as an output function.

    Args:
        name: String name ('relu', 'sigmoid', etc.), Activation instance, or None

    Returns:
        Activation instance

    Example:
        >>> act = get_activation('relu')
        >>> act(np.array([-1.0, 0.0, 1.0]))
        array([0., 0., 1.])
    """
    if isinstance(name, Activation):
        if isinstance(name, Softmax):
            raise ValueError(f"{name!r} can only be used as an output function")
        return name

    if name is None:
        return Identity()

    return _lookup(ACTIVATIONS, name, 'activation')


def get_output_function(name):
    """
    Get the transform applied to the final layer's activations.

    Only Identity and Softmax are valid output transforms.
    """
    if isinstance(name, (Identity, Softmax)):
        return name

    if isinstance(name, Activation):
        raise ValueError(f"{name!r} is not a valid output function (use identity or softmax)")

    if name is None:
        return Identity()

    return _lookup(OUTPUT_FUNCTIONS, name, 'output function')
