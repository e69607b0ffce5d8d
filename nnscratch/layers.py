"""
Layers - From Scratch Implementation
====================================

Building blocks of the network, stored in owned row-major Tensors.

Layers implemented:
- DenseLayer: fully connected transformation with an element-wise activation
- ConvolutionLayer: zero-padded cross-correlation over a (channels, rows, cols)
  input with a (out_channels, in_channels, k_rows, k_cols) kernel

Only the dense layer takes part in training; the convolution layer is
forward-only.
"""

import enum
import logging

import numpy as np

from .activations import get_activation
from .errors import (ConvolutionDimensionMismatch, DimensionMismatch,
                     InvalidShape, ShapeMismatch)
from .initializers import Initializer
from .tensor import Tensor

logger = logging.getLogger(__name__)


class Layer:
    """Base class for all layers."""

    def __init__(self):
        self.params = {}    # Parameters, as Tensors

    def parameter_count(self):
        return sum(p.size for p in self.params.values())


def _preset_tensor(values, dimensions, name):
    """Copy preset values into a new Tensor, checking the shape."""
    array = np.asarray(values.array if isinstance(values, Tensor) else values,
                       dtype=np.float64)
    if array.shape != tuple(dimensions):
        raise ShapeMismatch(f"Preset {name} has shape {array.shape}, expected {tuple(dimensions)}")
    return Tensor(dimensions, array.reshape(-1))


class DenseLayer(Layer):
    """
    Fully Connected (Dense) Layer.

    Each output unit j computes:
        pre_activation[j] = bias[j] + sum_k weight[j][k] * input[k]
        activations[j]    = f(pre_activation[j])

    Args:
        output_dim: Number of output units (M)
        input_dim: Number of inputs (N)
        activation: Activation name or instance (function + derivative)
        weights: Optional preset M x N weights (copied)
        biases: Optional preset length-M biases (copied)
        initializer: Initializer used when weights are not preset. If None,
            an unseeded one keyed on this layer's fan-in is created.
        layer_index: Which initializer distribution to draw from

    Both caches are overwritten by every set_activations() call and are only
    meaningful until the next one.
    """

    def __init__(self, output_dim, input_dim, activation='relu', weights=None,
                 biases=None, initializer=None, layer_index=0):
        super().__init__()

        if output_dim <= 0 or input_dim <= 0:
            raise InvalidShape(f"Dense layer sizes must be positive, got ({output_dim}, {input_dim})")

        self.output_dim = output_dim
        self.input_dim = input_dim
        self.activation = get_activation(activation)

        if weights is None:
            if initializer is None:
                initializer, layer_index = Initializer([input_dim]), 0
            draws = initializer.sample(layer_index, output_dim * input_dim)
            self.params['weight'] = Tensor((output_dim, input_dim), draws)
        else:
            self.params['weight'] = _preset_tensor(weights, (output_dim, input_dim), 'weights')

        if biases is None:
            self.params['bias'] = Tensor.zeros((output_dim,))
        else:
            self.params['bias'] = _preset_tensor(biases, (output_dim,), 'biases')

        self.pre_activation = Tensor.zeros((output_dim,))
        self.activations = Tensor.zeros((output_dim,))

    @property
    def weights(self):
        return self.params['weight']

    @property
    def biases(self):
        return self.params['bias']

    def set_activations(self, x):
        """
        Forward pass: fill the pre-activation and activation caches.

        Args:
            x: Input vector of length input_dim

        Raises:
            DimensionMismatch: if len(x) != input_dim (caches untouched)
        """
        x = np.asarray(x, dtype=np.float64).reshape(-1)
        if x.size != self.input_dim:
            raise DimensionMismatch(
                f"Dense layer expects {self.input_dim} inputs, got {x.size}"
            )

        z = self.params['bias'].elements + self.params['weight'].array @ x
        self.pre_activation.elements[:] = z
        self.activations.elements[:] = self.activation.forward(z)

    def forward(self, x):
        """set_activations() followed by a copy of the activation output."""
        self.set_activations(x)
        return self.get_activations()

    def backward(self, grad_output, layer_input, regularisation_factor=0.0):
        """
        Backward pass for one example, using the caches of the last forward pass.

        Args:
            grad_output: dLoss/dActivations of this layer, length output_dim
            layer_input: The input fed to the last set_activations() call
            regularisation_factor: L2 factor applied to the weight gradient

        Returns:
            (grad_input, bias_grad, weight_grad):
                grad_input  = W.T @ g                       (length input_dim)
                bias_grad   = g                             (biases are not regularised)
                weight_grad = outer(g, input) + factor * 2W
            where g = grad_output * f'(pre_activation).

        Parameters are not modified, so grad_input always uses the weights
        as they stood for the forward pass.
        """
        g = np.asarray(grad_output, dtype=np.float64).reshape(-1)
        if g.size != self.output_dim:
            raise DimensionMismatch(
                f"Dense layer expects a gradient of length {self.output_dim}, got {g.size}"
            )
        a = np.asarray(layer_input, dtype=np.float64).reshape(-1)
        if a.size != self.input_dim:
            raise DimensionMismatch(
                f"Dense layer expects {self.input_dim} inputs, got {a.size}"
            )

        W = self.params['weight'].array

        g = g * self.activation.backward(self.pre_activation.elements)

        reg_bias = np.zeros(self.output_dim)
        reg_weight = 2.0 * W

        bias_grad = g + regularisation_factor * reg_bias
        weight_grad = np.outer(g, a) + regularisation_factor * reg_weight

        grad_input = W.T @ g

        return grad_input, bias_grad, weight_grad

    def regulariser(self):
        """Sum of squared weights (biases excluded)."""
        return float(np.sum(self.params['weight'].elements ** 2))

    # Read-only introspection

    def get_weights(self):
        return self.params['weight'].array.copy()

    def get_biases(self):
        return self.params['bias'].elements.copy()

    def get_activations(self):
        return self.activations.elements.copy()

    def get_pre_activations(self):
        return self.pre_activation.elements.copy()

    def __repr__(self):
        return f"DenseLayer({self.output_dim}, {self.input_dim}, activation={self.activation!r})"


class ConvolutionMode(enum.Enum):
    """How much zero padding surrounds the input."""

    VALID = 'valid'
    OPTIMAL = 'optimal'
    SAME = 'same'
    FULL = 'full'


def convolution_padding(mode, kernel_rows, kernel_cols):
    """
    Padding (rows, cols) for a convolution mode.

        valid   -> (0, 0)
        same    -> (k_rows // 2, k_cols // 2)
        full    -> (k_rows - 1, k_cols - 1)
        optimal -> (k_rows // 3, k_rows // 3)

    'optimal' is a fixed rule of thumb taken from the row size only, not a
    general formula.
    """
    mode = ConvolutionMode(mode)

    if mode is ConvolutionMode.VALID:
        return (0, 0)
    elif mode is ConvolutionMode.SAME:
        return (kernel_rows // 2, kernel_cols // 2)
    elif mode is ConvolutionMode.FULL:
        return (kernel_rows - 1, kernel_cols - 1)
    else:
        return (kernel_rows // 3, kernel_rows // 3)


class ConvolutionLayer(Layer):
    """
    2D Convolution (cross-correlation) Layer, forward only.

    Args:
        input_dims: (channels, rows, cols) of the input
        output_dims: (out_channels, out_rows, out_cols) of the output
        kernel_dims: (out_channels, in_channels, k_rows, k_cols)
        mode: ConvolutionMode or its name ('valid', 'optimal', 'same', 'full')
        initializer: Initializer for the default kernel. If None, an unseeded
            one keyed on k_rows * k_cols is created.
        kernel: Optional preset kernel of shape kernel_dims (copied)
        layer_index: Which initializer distribution to draw from

    Default kernel: kernel[o][c] is drawn from the initializer when o == c
    and zero otherwise, so each output channel only sees its own input
    channel. Cross-channel kernels have to be preset.

    Output:
        out[o][r][c] = sum_{ic,kr,kc} in[ic][r*d + kr - pad_r][c*d + kc - pad_c]
                                      * kernel[o][ic][kr][kc]
    where d is the downsample factor and input coordinates outside the input
    read as zero.
    """

    def __init__(self, input_dims, output_dims, kernel_dims, mode='valid',
                 initializer=None, kernel=None, layer_index=0):
        super().__init__()

        input_dims = tuple(input_dims)
        output_dims = tuple(output_dims)
        kernel_dims = tuple(kernel_dims)

        if len(input_dims) != 3 or len(output_dims) != 3 or len(kernel_dims) != 4:
            raise InvalidShape(
                f"Expected 3 input, 3 output and 4 kernel dimensions, got "
                f"{input_dims}, {output_dims}, {kernel_dims}"
            )
        if min(input_dims + output_dims + kernel_dims) <= 0:
            raise InvalidShape(
                f"Convolution dimensions must be positive: {input_dims}, {output_dims}, {kernel_dims}"
            )
        if kernel_dims[0] != output_dims[0]:
            raise DimensionMismatch(
                f"Kernel has {kernel_dims[0]} output channels, output has {output_dims[0]}"
            )
        if kernel_dims[1] != input_dims[0]:
            raise DimensionMismatch(
                f"Kernel has {kernel_dims[1]} input channels, input has {input_dims[0]}"
            )

        self.input_dims = input_dims
        self.output_dims = output_dims
        self.kernel_dims = kernel_dims
        self.mode = ConvolutionMode(mode)
        self.padding = convolution_padding(self.mode, kernel_dims[2], kernel_dims[3])

        if kernel is None:
            if initializer is None:
                initializer, layer_index = Initializer([kernel_dims[2] * kernel_dims[3]]), 0
            self.params['kernel'] = self._diagonal_kernel(initializer, layer_index)
        else:
            self.params['kernel'] = _preset_tensor(kernel, kernel_dims, 'kernel')

        self.output = Tensor.zeros(output_dims)

    def _diagonal_kernel(self, initializer, layer_index):
        out_channels, in_channels, kh, kw = self.kernel_dims
        kernel = Tensor.zeros(self.kernel_dims)
        K = kernel.array
        for o in range(min(out_channels, in_channels)):
            K[o, o] = initializer.sample(layer_index, (kh, kw))
        return kernel

    @property
    def kernel(self):
        return self.params['kernel']

    def _padded_input(self, x, downsample):
        """
        Zero-pad so every window the output reads lies inside the array.

        Input row r lands at padded row r + pad_r. The bottom/right extent is
        whatever the last output window reaches, which may be more or less
        than pad_r.
        """
        channels, rows, cols = x.shape
        _, out_rows, out_cols = self.output_dims
        _, _, kh, kw = self.kernel_dims
        ph, pw = self.padding

        padded_rows = max(rows + ph, (out_rows - 1) * downsample + kh)
        padded_cols = max(cols + pw, (out_cols - 1) * downsample + kw)

        x_padded = np.zeros((channels, padded_rows, padded_cols), dtype=np.float64)
        x_padded[:, ph:ph + rows, pw:pw + cols] = x
        return x_padded

    def convolve(self, x, downsample=1):
        """
        Forward pass.

        Args:
            x: Input Tensor (or array) of shape input_dims
            downsample: Stride between output positions (default: 1)

        Returns:
            The layer's output Tensor (overwritten on every call)

        Raises:
            ConvolutionDimensionMismatch: input shape differs from input_dims
        """
        if downsample < 1:
            raise ValueError(f"downsample must be >= 1, got {downsample}")

        x = x.array if isinstance(x, Tensor) else np.asarray(x, dtype=np.float64)
        if x.shape != self.input_dims:
            raise ConvolutionDimensionMismatch(
                f"Convolution input has dimensions {x.shape}, layer is configured for {self.input_dims}"
            )

        _, out_rows, out_cols = self.output_dims
        _, in_channels, kh, kw = self.kernel_dims
        d = downsample

        x_padded = self._padded_input(x, d)

        # View of every window without copying: (in_channels, kh, kw, out_rows, out_cols)
        shape = (in_channels, kh, kw, out_rows, out_cols)
        strides = (
            x_padded.strides[0],       # channel
            x_padded.strides[1],       # kernel row
            x_padded.strides[2],       # kernel col
            x_padded.strides[1] * d,   # output row (strided)
            x_padded.strides[2] * d,   # output col (strided)
        )
        windows = np.lib.stride_tricks.as_strided(x_padded, shape=shape, strides=strides,
                                                  writeable=False)

        result = np.einsum('ckluv,ockl->ouv', windows, self.params['kernel'].array)
        self.output.elements[:] = result.reshape(-1)

        logger.debug("Convolved %s -> %s (padding=%s, downsample=%d)",
                     self.input_dims, self.output_dims, self.padding, d)
        return self.output

    def __repr__(self):
        return (f"ConvolutionLayer(input_dims={self.input_dims}, output_dims={self.output_dims}, "
                f"kernel_dims={self.kernel_dims}, mode={self.mode.value})")
