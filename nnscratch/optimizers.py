"""
Optimizers
==========

Update rules that turn the network's finalised gradients into parameter
changes. The network owns every buffer (gradients, velocities, RMS
accumulators); an optimizer only holds the rule, and reads `momentum` and
`decay_rate` from the network it is stepping.

This module implements:
- GradientDescent:  param -= lr * g
- Momentum:         v = mu*v - lr*g;  param += v
- NesterovMomentum: lookahead param += mu*v before the gradient, then the
                    momentum update applied from the un-shifted parameters
- RMSProp:          r = rho*r + (1-rho)*g^2;  param -= lr * g / sqrt(r + eps)
- NesterovRMSProp:  lookahead, r update, v = mu*v - lr*g / sqrt(r + eps),
                    param += v

eps = 1e-6 for both RMS rules, so a zero accumulator on the first step
cannot divide by zero.

Learning-rate schedules are closures `scheduler(step, initial_lr)`.
"""

import numpy as np

PARAM_NAMES = ('weight', 'bias')


class Optimizer:
    """Base class for optimizers."""

    uses_lookahead = False

    def lookahead(self, network):
        """Shift parameters before gradients are computed (Nesterov variants only)."""

    def step(self, network, learning_rate):
        """Update the parameters of every layer of `network` in place."""
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class GradientDescent(Optimizer):
    """
    Plain gradient descent.

    Used both per example and on averaged minibatch gradients.
    """

    def step(self, network, learning_rate):
        for i, layer in enumerate(network.layers):
            for name in PARAM_NAMES:
                param = layer.params[name].elements
                grad = network.gradients[i][name].elements
                param -= learning_rate * grad


class Momentum(Optimizer):
    """
    Gradient descent with momentum.

    The velocity is an exponentially weighted sum of past steps and is kept
    for the whole lifetime of the network.
    """

    def step(self, network, learning_rate):
        mu = network.momentum
        for i, layer in enumerate(network.layers):
            for name in PARAM_NAMES:
                param = layer.params[name].elements
                grad = network.gradients[i][name].elements
                v = network.velocities[i][name].elements

                v *= mu
                v -= learning_rate * grad
                param += v


def _shift_by_velocity(network, sign):
    mu = network.momentum
    for i, layer in enumerate(network.layers):
        for name in PARAM_NAMES:
            layer.params[name].elements += sign * mu * network.velocities[i][name].elements


class NesterovMomentum(Momentum):
    """
    Nesterov momentum.

    lookahead() moves the parameters to param + mu*v so the gradient is
    evaluated there; step() moves them back before the velocity update, so
    the net effect is param += v_new.
    """

    uses_lookahead = True

    def lookahead(self, network):
        _shift_by_velocity(network, 1.0)

    def step(self, network, learning_rate):
        _shift_by_velocity(network, -1.0)
        super().step(network, learning_rate)


class RMSProp(Optimizer):
    """
    RMSProp: per-parameter step size from a running mean of squared gradients.

    Args:
        epsilon: Added under the square root (default: 1e-6)
    """

    def __init__(self, epsilon=1e-6):
        self.epsilon = epsilon

    def _accumulate(self, network, i, name):
        rho = network.decay_rate
        grad = network.gradients[i][name].elements
        r = network.rms[i][name].elements
        r *= rho
        r += (1 - rho) * grad ** 2
        return grad / np.sqrt(r + self.epsilon)

    def step(self, network, learning_rate):
        for i, layer in enumerate(network.layers):
            for name in PARAM_NAMES:
                layer.params[name].elements -= learning_rate * self._accumulate(network, i, name)

    def __repr__(self):
        return f"{self.__class__.__name__}(epsilon={self.epsilon})"


class NesterovRMSProp(RMSProp):
    """
    RMSProp with Nesterov momentum.

    Same lookahead handling as NesterovMomentum; the velocity is driven by
    the RMS-scaled gradient.
    """

    uses_lookahead = True

    def lookahead(self, network):
        _shift_by_velocity(network, 1.0)

    def step(self, network, learning_rate):
        _shift_by_velocity(network, -1.0)

        mu = network.momentum
        for i, layer in enumerate(network.layers):
            for name in PARAM_NAMES:
                v = network.velocities[i][name].elements
                v *= mu
                v -= learning_rate * self._accumulate(network, i, name)
                layer.params[name].elements += v


# ============================================================================
# Learning Rate Schedulers
# ============================================================================

def linear_warm_down(time_constant, final_fraction=0.01):
    """
    Linear decay from initial_lr to final_fraction * initial_lr over
    `time_constant` steps, then flat:

        alpha = min(step / time_constant, 1)
        lr    = (1 - (1 - final_fraction) * alpha) * initial_lr
    """
    if time_constant <= 0:
        raise ValueError(f"time_constant must be positive, got {time_constant}")

    def scheduler(step, initial_lr):
        alpha = min(step / time_constant, 1.0)
        return (1 - (1 - final_fraction) * alpha) * initial_lr
    return scheduler


def constant_lr():
    """No decay - constant learning rate."""
    def scheduler(step, initial_lr):
        return initial_lr
    return scheduler


# Optimizer registry
OPTIMIZERS = {
    'sgd': GradientDescent,
    'gd': GradientDescent,
    'gradient_descent': GradientDescent,
    'momentum': Momentum,
    'nesterov': NesterovMomentum,
    'nesterov_momentum': NesterovMomentum,
    'rmsprop': RMSProp,
    'nesterov_rmsprop': NesterovRMSProp,
}


def get_optimizer(name, **kwargs):
    """
    Get optimizer by name.

    Args:
        name: Registry name or Optimizer instance
        **kwargs: Arguments to pass to the optimizer

    Returns:
        Optimizer instance
    """
    if isinstance(name, Optimizer):
        return name

    name_lower = name.lower().replace('-', '_')
    if name_lower not in OPTIMIZERS:
        raise ValueError(f"Unknown optimizer '{name}'. Available: {list(OPTIMIZERS.keys())}")

    return OPTIMIZERS[name_lower](**kwargs)


# Learning rate scheduler registry
LR_SCHEDULERS = {
    'linear_warm_down': linear_warm_down,
    'constant': constant_lr,
}
