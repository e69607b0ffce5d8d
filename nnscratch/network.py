"""
Network - Dense Stack Training Engine
=====================================

This is the main class that ties everything together:
- Layer stacking
- Forward pass (propagate)
- Cost with L2 weight regularisation
- Backward pass (backpropagation) into per-layer gradient buffers
- Optimizer updates and the learning-rate schedule
- Training loops for the six gradient-descent variants

Buffers, per layer i, each shaped like the matching parameter:
    gradients[i]  = {'weight': Tensor(M, N), 'bias': Tensor(M)}
    velocities[i] = {'weight': ..., 'bias': ...}
    rms[i]        = {'weight': ..., 'bias': ...}

Gradients are overwritten by back_propagate() and accumulated by
back_propagate_stochastic() between reset_gradients() and the next update.
Velocities and RMS accumulators are never reset.

A Network is not safe to train from several threads at once; use one
instance per worker.
"""

import logging

import numpy as np
from tqdm import tqdm

from .activations import get_output_function
from .errors import DimensionMismatch, InvalidShape
from .initializers import Initializer
from .layers import DenseLayer
from .losses import get_loss
from .optimizers import (GradientDescent, Momentum, NesterovMomentum, RMSProp,
                         NesterovRMSProp, PARAM_NAMES, LR_SCHEDULERS, get_optimizer)
from .tensor import Tensor
from .utils import as_example_set, shuffled_indices, create_minibatches

logger = logging.getLogger(__name__)


class Network:
    """
    Feed-forward stack of dense layers.

    Args:
        dimensions: Layer widths [input, hidden..., output] (depth + 1 entries)
        activations: One activation (name or instance) per layer, or a
            single one used for every layer
        output_function: 'identity' or 'softmax', applied to the final activations
        loss: 'cross_entropy' or 'mse' (or a Loss instance)
        regularisation_factor: L2 factor on the sum of squared weights
        learning_rate: Base learning rate
        learning_rate_time_constant: Steps over which the rate decays linearly
            to 1% of the base rate. None keeps the base rate.
        momentum: Velocity decay for the momentum variants
        decay_rate: Squared-gradient decay for the RMSProp variants
        epochs: Default number of epochs for the training loops
        seed: Seed for weight initialisation and epoch shuffling
            (None for non-deterministic)
        weights: Optional list of preset weight matrices, one per layer
        biases: Optional list of preset bias vectors, one per layer

    Example:
        >>> net = Network([4, 5, 5, 4], ['relu', 'relu', 'relu'], loss='mse',
        ...               learning_rate=0.01)
        >>> costs = net.train_batch(X, Y)
    """

    def __init__(self, dimensions, activations, output_function='identity',
                 loss='cross_entropy', regularisation_factor=0.0, learning_rate=0.01,
                 learning_rate_time_constant=None, momentum=0.9, decay_rate=0.9,
                 epochs=1, seed=1000, weights=None, biases=None):
        dimensions = [int(d) for d in dimensions]
        if len(dimensions) < 2:
            raise InvalidShape(f"A network needs at least 2 dimensions, got {dimensions}")
        if any(d <= 0 for d in dimensions):
            raise InvalidShape(f"Layer widths must be positive, got {dimensions}")

        self.dimensions = dimensions
        self.depth = len(dimensions) - 1

        if isinstance(activations, (list, tuple)):
            activations = list(activations)
        else:
            activations = [activations] * self.depth
        if len(activations) != self.depth:
            raise DimensionMismatch(
                f"Got {len(activations)} activations for {self.depth} layers"
            )

        weights = self._per_layer(weights, 'weights')
        biases = self._per_layer(biases, 'biases')

        self.output_function = get_output_function(output_function)
        self.loss_fn = get_loss(loss)

        # Hyperparameters
        self.regularisation_factor = regularisation_factor
        self.base_learning_rate = learning_rate
        self.learning_rate = learning_rate
        self.learning_rate_time_constant = learning_rate_time_constant
        self.momentum = momentum
        self.decay_rate = decay_rate
        self.epochs = epochs
        self.seed = seed

        if learning_rate_time_constant is None:
            self.lr_scheduler = LR_SCHEDULERS['constant']()
        else:
            self.lr_scheduler = LR_SCHEDULERS['linear_warm_down'](learning_rate_time_constant)

        self.initializer = Initializer(dimensions[:-1], seed=seed)
        self._shuffle_rng = np.random.default_rng(seed)

        # Build the network
        self.layers = [
            DenseLayer(dimensions[i + 1], dimensions[i], activations[i],
                       weights=weights[i], biases=biases[i],
                       initializer=self.initializer, layer_index=i)
            for i in range(self.depth)
        ]

        self.gradients = self._zero_buffers()
        self.velocities = self._zero_buffers()
        self.rms = self._zero_buffers()

        self.output = np.zeros(dimensions[-1])

        logger.info("Created network with dimensions %s", dimensions)
        logger.info("Layer activations: %s", [l.activation.__class__.__name__ for l in self.layers])

    def _per_layer(self, presets, name):
        if presets is None:
            return [None] * self.depth
        presets = list(presets)
        if len(presets) != self.depth:
            raise DimensionMismatch(f"Got {len(presets)} preset {name} for {self.depth} layers")
        return presets

    def _zero_buffers(self):
        return [
            {name: Tensor.zeros(layer.params[name].shape) for name in PARAM_NAMES}
            for layer in self.layers
        ]

    # ------------------------------------------------------------------
    # Forward pass and cost
    # ------------------------------------------------------------------

    def propagate(self, x):
        """
        Forward pass through every layer.

        Args:
            x: Input vector of length dimensions[0]

        Returns:
            The transformed output vector (also stored as self.output)

        Raises:
            DimensionMismatch: wrong input width
        """
        x = np.asarray(x, dtype=np.float64).reshape(-1)
        if x.size != self.dimensions[0]:
            raise DimensionMismatch(
                f"Network expects {self.dimensions[0]} inputs, got {x.size}"
            )

        for layer in self.layers:
            layer.set_activations(x)
            x = layer.activations.elements

        self.output = self.output_function.forward(x).copy()
        return self.output.copy()

    def predict(self, inputs):
        """Propagate every row of `inputs` and stack the outputs."""
        inputs = np.asarray(inputs, dtype=np.float64)
        if inputs.ndim == 1:
            return self.propagate(inputs)
        return np.array([self.propagate(x) for x in inputs])

    def regulariser(self):
        """Sum of squared weights over all layers (biases are not included)."""
        return sum(layer.regulariser() for layer in self.layers)

    def cost(self, x, expected):
        """loss(propagate(x), expected) + regularisation_factor * regulariser()."""
        output = self.propagate(x)
        loss = self.loss_fn(output, expected)
        return loss + self.regularisation_factor * self.regulariser()

    # ------------------------------------------------------------------
    # Backward pass
    # ------------------------------------------------------------------

    def _check_expected(self, expected):
        expected = np.asarray(expected, dtype=np.float64).reshape(-1)
        if expected.size != self.dimensions[-1]:
            raise DimensionMismatch(
                f"Network outputs {self.dimensions[-1]} values, expected vector has {expected.size}"
            )
        return expected

    def _back_propagate(self, x, expected, scale):
        expected = self._check_expected(expected)
        y = self.propagate(x)
        x = np.asarray(x, dtype=np.float64).reshape(-1)

        g = self.loss_fn.backward(y, expected)

        for i in range(self.depth - 1, -1, -1):
            layer = self.layers[i]
            a = self.layers[i - 1].activations.elements if i > 0 else x

            g, bias_grad, weight_grad = layer.backward(g, a, self.regularisation_factor)

            grads = self.gradients[i]
            if scale is None:
                grads['bias'].elements[:] = bias_grad
                grads['weight'].elements[:] = weight_grad.reshape(-1)
            else:
                grads['bias'].elements += scale * bias_grad
                grads['weight'].elements += scale * weight_grad.reshape(-1)

    def back_propagate(self, x, expected):
        """
        Compute the gradients for one example, overwriting the gradient buffers.

        Walks the layers from last to first; each layer's gradient comes from
        its caches of this same forward pass, and the gradient passed to the
        previous layer uses the current (not yet updated) weights.
        """
        self._back_propagate(x, expected, None)

    def back_propagate_stochastic(self, x, expected, mean_batch_scale):
        """
        Compute the gradients for one example and add `mean_batch_scale` times
        them to the gradient buffers. Call reset_gradients() first.
        """
        self._back_propagate(x, expected, mean_batch_scale)

    def reset_gradients(self):
        """Zero the gradient buffers (velocities and RMS accumulators are kept)."""
        for grads in self.gradients:
            for tensor in grads.values():
                tensor.fill(0.0)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_learning_rate(self, step):
        """Set learning_rate from the schedule for a per-epoch step index."""
        self.learning_rate = self.lr_scheduler(step, self.base_learning_rate)
        return self.learning_rate

    def update_weights_and_biases(self):
        """Plain gradient descent step."""
        GradientDescent().step(self, self.learning_rate)

    def update_momentum(self):
        Momentum().step(self, self.learning_rate)

    def nesterov_lookahead(self):
        """Move parameters to param + momentum * velocity before computing gradients."""
        NesterovMomentum().lookahead(self)

    def update_nesterov_momentum(self):
        """Undo the lookahead, then apply the momentum update."""
        NesterovMomentum().step(self, self.learning_rate)

    def update_rmsprop(self):
        RMSProp().step(self, self.learning_rate)

    def update_nesterov_rmsprop(self):
        """Undo the lookahead, then apply the RMS-scaled momentum update."""
        NesterovRMSProp().step(self, self.learning_rate)

    # ------------------------------------------------------------------
    # Training loops
    # ------------------------------------------------------------------

    def train(self, inputs, expected, optimizer='sgd', minibatch_size=None,
              epochs=None, verbose=False):
        """
        Train the network.

        Every epoch the example order is reshuffled. With minibatch_size=None
        each example is one step (gradients overwritten); otherwise the
        shuffled order is cut into blocks of minibatch_size (remainder
        dropped) and each block's gradients are averaged before one update.

        The cost of a step is computed before any update, on the first
        example of the step only.

        Args:
            inputs: Input vectors, shape (N, dimensions[0])
            expected: Expected vectors, shape (N, dimensions[-1])
            optimizer: Registry name or Optimizer instance
            minibatch_size: None for per-example steps, else block size
            epochs: Number of epochs (default: self.epochs)
            verbose: Show a progress bar over epochs

        Returns:
            List of per-step costs, in step order across all epochs
        """
        optimizer = get_optimizer(optimizer)
        X, Y = as_example_set(inputs, expected, self.dimensions[0], self.dimensions[-1])
        epochs = self.epochs if epochs is None else epochs

        if minibatch_size is not None:
            if minibatch_size < 1:
                raise ValueError(f"minibatch_size must be >= 1, got {minibatch_size}")
            if minibatch_size > len(X):
                logger.warning("Minibatch size (%d) is larger than the example set (%d). "
                               "No steps will be taken.", minibatch_size, len(X))
            elif len(X) % minibatch_size:
                logger.warning("Dropping %d examples per epoch that do not fill a minibatch of %d.",
                               len(X) % minibatch_size, minibatch_size)

        logger.info("Training on %d examples for %d epochs with %r (minibatch_size=%s)",
                    len(X), epochs, optimizer, minibatch_size)

        costs = []

        pbar = tqdm(range(epochs), desc="Training", unit="epoch") if verbose else range(epochs)

        for epoch in pbar:
            order = shuffled_indices(len(X), self._shuffle_rng)
            if minibatch_size is None:
                blocks = order.reshape(-1, 1)
            else:
                blocks = create_minibatches(order, minibatch_size)

            for step, block in enumerate(blocks):
                self.update_learning_rate(step)

                first = block[0]
                costs.append(self.cost(X[first], Y[first]))

                if optimizer.uses_lookahead:
                    optimizer.lookahead(self)

                if minibatch_size is None:
                    self.back_propagate(X[first], Y[first])
                else:
                    self.reset_gradients()
                    scale = 1.0 / minibatch_size
                    for j in block:
                        self.back_propagate_stochastic(X[j], Y[j], scale)

                optimizer.step(self, self.learning_rate)

            if costs:
                logger.debug("Epoch %d/%d - last cost %.6f - lr %.6f",
                             epoch + 1, epochs, costs[-1], self.learning_rate)
                if verbose:
                    pbar.set_postfix({'cost': f'{costs[-1]:.4f}', 'lr': f'{self.learning_rate:.6f}'})

        logger.info("Training finished after %d steps.", len(costs))
        return costs

    def train_batch(self, inputs, expected, **kwargs):
        """Plain gradient descent, one step per example."""
        return self.train(inputs, expected, optimizer=GradientDescent(), **kwargs)

    def train_minibatch(self, inputs, expected, minibatch_size, **kwargs):
        """Plain gradient descent on averaged minibatch gradients."""
        return self.train(inputs, expected, optimizer=GradientDescent(),
                          minibatch_size=minibatch_size, **kwargs)

    def train_momentum(self, inputs, expected, minibatch_size=None, **kwargs):
        return self.train(inputs, expected, optimizer=Momentum(),
                          minibatch_size=minibatch_size, **kwargs)

    def train_nesterov_momentum(self, inputs, expected, minibatch_size=None, **kwargs):
        return self.train(inputs, expected, optimizer=NesterovMomentum(),
                          minibatch_size=minibatch_size, **kwargs)

    def train_rmsprop(self, inputs, expected, minibatch_size=None, **kwargs):
        return self.train(inputs, expected, optimizer=RMSProp(),
                          minibatch_size=minibatch_size, **kwargs)

    def train_nesterov_rmsprop(self, inputs, expected, minibatch_size=None, **kwargs):
        return self.train(inputs, expected, optimizer=NesterovRMSProp(),
                          minibatch_size=minibatch_size, **kwargs)

    # ------------------------------------------------------------------
    # Read-only introspection
    # ------------------------------------------------------------------

    def get_weights(self, layer_index):
        return self.layers[layer_index].get_weights()

    def get_biases(self, layer_index):
        return self.layers[layer_index].get_biases()

    def get_activations(self, layer_index):
        return self.layers[layer_index].get_activations()

    def parameter_count(self):
        return sum(layer.parameter_count() for layer in self.layers)

    def __repr__(self):
        return (f"Network(dimensions={self.dimensions}, output_function={self.output_function!r}, "
                f"loss={self.loss_fn!r})")
