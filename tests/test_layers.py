"""
Tests for Layers
================

Unit tests for the initializer, dense layers and convolution layers.
"""

import numpy as np
import pytest
import sys
import os

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nnscratch.layers import (DenseLayer, ConvolutionLayer, ConvolutionMode,
                              convolution_padding)
from nnscratch.initializers import Initializer
from nnscratch.activations import Identity, ReLU
from nnscratch.tensor import Tensor
from nnscratch.errors import (DimensionMismatch, ConvolutionDimensionMismatch,
                              ShapeMismatch, InvalidShape, OutOfRange)


def naive_convolve(x, kernel, padding, out_dims, downsample=1):
    """Direct loop implementation of the zero-padded cross-correlation."""
    out_channels, in_channels, kh, kw = kernel.shape
    _, rows, cols = x.shape
    ph, pw = padding
    out = np.zeros(out_dims)

    for o in range(out_dims[0]):
        for r in range(out_dims[1]):
            for c in range(out_dims[2]):
                total = 0.0
                for ic in range(in_channels):
                    for kr in range(kh):
                        for kc in range(kw):
                            ir = r * downsample + kr - ph
                            icol = c * downsample + kc - pw
                            if 0 <= ir < rows and 0 <= icol < cols:
                                total += x[ic, ir, icol] * kernel[o, ic, kr, kc]
                out[o, r, c] = total
    return out


class TestInitializer:
    """Tests for seeded weight initialization."""

    def test_same_seed_same_draws(self):
        """The same seed reproduces the same sequence for the same call order."""
        a = Initializer([4, 5, 3], seed=1000)
        b = Initializer([4, 5, 3], seed=1000)

        draws_a = [a.sample(0), a.sample(2), a.sample(1)] + list(a.sample(1, 6))
        draws_b = [b.sample(0), b.sample(2), b.sample(1)] + list(b.sample(1, 6))

        assert draws_a == draws_b

    def test_different_seeds_differ(self):
        a = Initializer([4], seed=1)
        b = Initializer([4], seed=2)

        assert not np.array_equal(a.sample(0, 10), b.sample(0, 10))

    def test_standard_deviation_is_inverse_fan_in(self):
        """Draws have mean 0 and standard deviation 1 / fan_in."""
        init = Initializer([2, 10], seed=0)

        wide = init.sample(0, 20000)
        narrow = init.sample(1, 20000)

        assert abs(np.mean(wide)) < 0.02
        assert abs(np.std(wide) - 0.5) < 0.02
        assert abs(np.std(narrow) - 0.1) < 0.005

    def test_sample_returns_float(self):
        assert isinstance(Initializer([3], seed=0).sample(0), float)

    def test_invalid_fan_in(self):
        with pytest.raises(InvalidShape):
            Initializer([3, 0])

    def test_unknown_layer(self):
        with pytest.raises(OutOfRange):
            Initializer([3], seed=0).sample(1)


class TestDenseLayer:
    """Tests for DenseLayer."""

    def test_single_unit_forward(self):
        """Weight 2, bias 1, identity activation, input 3 -> 7."""
        layer = DenseLayer(1, 1, Identity(), weights=[[2.0]], biases=[1.0])
        layer.set_activations([3.0])

        assert layer.get_activations()[0] == 7.0
        assert layer.get_pre_activations()[0] == 7.0

    def test_caches(self):
        """Both caches are filled: pre-activation and activation output."""
        W = np.array([[1.0, -2.0], [0.5, 0.5]])
        b = np.array([0.0, 1.0])
        layer = DenseLayer(2, 2, 'relu', weights=W, biases=b)

        x = np.array([1.0, 1.0])
        layer.set_activations(x)

        np.testing.assert_allclose(layer.get_pre_activations(), [-1.0, 2.0])
        np.testing.assert_allclose(layer.get_activations(), [0.0, 2.0])

    def test_forward_returns_copy(self):
        layer = DenseLayer(1, 2, Identity(), weights=[[1.0, 1.0]])
        out = layer.forward([2.0, 3.0])
        out[0] = 0.0

        assert layer.activations[0] == 5.0

    def test_caches_are_overwritten(self):
        """A second forward pass replaces, not accumulates, the caches."""
        layer = DenseLayer(1, 1, Identity(), weights=[[1.0]], biases=[0.0])
        layer.set_activations([2.0])
        layer.set_activations([5.0])

        assert layer.get_activations()[0] == 5.0

    def test_default_initialization(self):
        """Omitted weights come from the initializer; biases default to zero."""
        init_a = Initializer([3, 4], seed=42)
        init_b = Initializer([3, 4], seed=42)

        layer = DenseLayer(4, 3, 'relu', initializer=init_a, layer_index=0)
        expected = init_b.sample(0, 12).reshape(4, 3)

        np.testing.assert_array_equal(layer.get_weights(), expected)
        np.testing.assert_array_equal(layer.get_biases(), np.zeros(4))

    def test_preset_weights_copied(self):
        W = np.ones((2, 3))
        layer = DenseLayer(2, 3, 'relu', weights=W)
        W[0, 0] = 50.0

        assert layer.weights[0][0] == 1.0

    def test_preset_shape_mismatch(self):
        with pytest.raises(ShapeMismatch):
            DenseLayer(2, 3, 'relu', weights=np.ones((3, 2)))

    def test_input_width_mismatch(self):
        """Wrong input width fails without touching the caches."""
        layer = DenseLayer(2, 3, Identity(), weights=np.ones((2, 3)))
        layer.set_activations([1.0, 1.0, 1.0])

        with pytest.raises(DimensionMismatch):
            layer.set_activations([1.0, 2.0])

        np.testing.assert_allclose(layer.get_activations(), [3.0, 3.0])

    def test_introspection_does_not_alias(self):
        layer = DenseLayer(2, 2, 'relu', weights=np.eye(2))
        w = layer.get_weights()
        w[0, 0] = 9.0

        assert layer.weights[0][0] == 1.0

    def test_backward_shapes(self):
        """Gradient shapes match the parameter shapes."""
        layer = DenseLayer(4, 3, 'sigmoid', initializer=Initializer([3], seed=0))
        x = np.random.randn(3)
        layer.set_activations(x)

        grad_input, bias_grad, weight_grad = layer.backward(np.random.randn(4), x)

        assert grad_input.shape == (3,)
        assert bias_grad.shape == (4,)
        assert weight_grad.shape == (4, 3)

    def test_backward_regularisation(self):
        """Regularisation adds factor * 2W to the weight gradient only."""
        W = np.array([[1.0, 2.0]])
        layer = DenseLayer(1, 2, Identity(), weights=W)
        x = np.array([0.5, -1.0])
        layer.set_activations(x)

        _, b0, w0 = layer.backward(np.array([1.0]), x, 0.0)
        _, b1, w1 = layer.backward(np.array([1.0]), x, 0.1)

        np.testing.assert_allclose(b1, b0)
        np.testing.assert_allclose(w1 - w0, 0.1 * 2 * W)

    def test_backward_leaves_parameters(self):
        layer = DenseLayer(2, 2, ReLU(), weights=np.eye(2))
        x = np.array([1.0, 2.0])
        layer.set_activations(x)
        layer.backward(np.ones(2), x, 0.5)

        np.testing.assert_array_equal(layer.get_weights(), np.eye(2))


class TestConvolutionPadding:
    """Tests for the padding derived from the convolution mode."""

    @pytest.mark.parametrize('mode, expected', [
        ('valid', (0, 0)),
        ('same', (2, 1)),
        ('full', (4, 2)),
        ('optimal', (1, 1)),
    ])
    def test_padding(self, mode, expected):
        assert convolution_padding(mode, 5, 3) == expected

    def test_enum_accepted(self):
        assert convolution_padding(ConvolutionMode.SAME, 3, 3) == (1, 1)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            convolution_padding('circular', 3, 3)


class TestConvolutionLayer:
    """Tests for ConvolutionLayer."""

    def test_valid_unit_kernel_is_identity(self):
        """Valid mode with a 1x1 kernel of value 1 passes the input through."""
        conv = ConvolutionLayer((1, 4, 5), (1, 4, 5), (1, 1, 1, 1), mode='valid',
                                kernel=np.ones((1, 1, 1, 1)))
        x = np.random.randn(1, 4, 5)

        output = conv.convolve(Tensor.from_array(x))

        np.testing.assert_allclose(output.array, x)

    def test_same_mode_matches_direct_loops(self):
        """Same padding keeps the spatial size and zero-pads the border."""
        np.random.seed(42)
        kernel = np.random.randn(3, 2, 3, 3)
        conv = ConvolutionLayer((2, 6, 6), (3, 6, 6), (3, 2, 3, 3), mode='same', kernel=kernel)
        x = np.random.randn(2, 6, 6)

        output = conv.convolve(x)

        expected = naive_convolve(x, kernel, (1, 1), (3, 6, 6))
        np.testing.assert_allclose(output.array, expected, atol=1e-12)

    def test_full_mode_matches_direct_loops(self):
        np.random.seed(0)
        kernel = np.random.randn(1, 1, 2, 3)
        conv = ConvolutionLayer((1, 4, 4), (1, 5, 6), (1, 1, 2, 3), mode='full', kernel=kernel)
        x = np.random.randn(1, 4, 4)

        output = conv.convolve(x)

        expected = naive_convolve(x, kernel, (1, 2), (1, 5, 6))
        np.testing.assert_allclose(output.array, expected, atol=1e-12)

    def test_downsample(self):
        np.random.seed(1)
        kernel = np.random.randn(2, 2, 3, 3)
        conv = ConvolutionLayer((2, 7, 7), (2, 3, 3), (2, 2, 3, 3), mode='valid', kernel=kernel)
        x = np.random.randn(2, 7, 7)

        output = conv.convolve(x, downsample=2)

        expected = naive_convolve(x, kernel, (0, 0), (2, 3, 3), downsample=2)
        np.testing.assert_allclose(output.array, expected, atol=1e-12)

    def test_default_kernel_is_channel_diagonal(self):
        """Default kernels only connect output channel c to input channel c."""
        conv = ConvolutionLayer((3, 5, 5), (3, 5, 5), (3, 3, 3, 3), mode='same',
                                initializer=Initializer([9], seed=7))
        K = conv.kernel.array

        for o in range(3):
            for c in range(3):
                if o != c:
                    assert np.all(K[o, c] == 0)
                else:
                    assert np.any(K[o, c] != 0)

    def test_chained_kernel_indexing(self):
        kernel = np.arange(8, dtype=np.float64).reshape(2, 1, 2, 2)
        conv = ConvolutionLayer((1, 3, 3), (2, 2, 2), (2, 1, 2, 2), kernel=kernel)

        assert conv.kernel[1][0][1][0] == kernel[1, 0, 1, 0]

    def test_input_dimension_mismatch(self):
        """Mismatched input dimensions are rejected, not just warned about."""
        conv = ConvolutionLayer((1, 4, 4), (1, 4, 4), (1, 1, 1, 1))
        before = conv.output.copy()

        with pytest.raises(ConvolutionDimensionMismatch):
            conv.convolve(np.zeros((1, 5, 4)))

        assert conv.output == before

    def test_mismatch_is_a_dimension_mismatch(self):
        conv = ConvolutionLayer((1, 4, 4), (1, 4, 4), (1, 1, 1, 1))

        with pytest.raises(DimensionMismatch):
            conv.convolve(np.zeros((2, 4, 4)))

    def test_kernel_channel_mismatch(self):
        with pytest.raises(DimensionMismatch):
            ConvolutionLayer((2, 4, 4), (1, 4, 4), (1, 1, 3, 3))

    def test_preset_kernel_shape(self):
        with pytest.raises(ShapeMismatch):
            ConvolutionLayer((1, 4, 4), (1, 4, 4), (1, 1, 3, 3), kernel=np.ones((1, 1, 2, 2)))

    def test_invalid_downsample(self):
        conv = ConvolutionLayer((1, 4, 4), (1, 4, 4), (1, 1, 1, 1))

        with pytest.raises(ValueError):
            conv.convolve(np.zeros((1, 4, 4)), downsample=0)
