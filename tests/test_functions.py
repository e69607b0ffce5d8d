"""
Tests for Activations and Losses
================================

Values, derivatives and registries of the stateless function tables.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nnscratch.activations import (Identity, ReLU, Sigmoid, Tanh, Step, Heaviside,
                                   LeakyReLU, Softmax, get_activation, get_output_function)
from nnscratch.losses import MeanSquaredError, CrossEntropy, get_loss
from nnscratch.errors import DimensionMismatch


def numerical_derivative(f, x, epsilon=1e-6):
    """Element-wise centered difference of an element-wise function."""
    return (f(x + epsilon) - f(x - epsilon)) / (2 * epsilon)


class TestActivations:
    """Tests for activation values and derivatives."""

    def test_relu(self):
        relu = ReLU()
        x = np.array([-2.0, 0.0, 3.0])

        np.testing.assert_array_equal(relu(x), [0.0, 0.0, 3.0])
        np.testing.assert_array_equal(relu.backward(x), [0.0, 0.0, 1.0])

    def test_relu_derivative_is_step(self):
        x = np.array([-1.0, 0.0, 0.5])

        np.testing.assert_array_equal(ReLU().backward(x), Step().forward(x))

    def test_heaviside_shift(self):
        h = Heaviside(a=1.0)

        np.testing.assert_array_equal(h(np.array([-2.0, -0.5])), [0.0, 1.0])

    @pytest.mark.parametrize('activation', [Sigmoid(), Tanh(), Identity(), LeakyReLU(0.1)])
    def test_derivative_matches_finite_difference(self, activation):
        np.random.seed(0)
        x = np.random.randn(10) + 0.05  # keep away from the LeakyReLU kink

        np.testing.assert_allclose(activation.backward(x),
                                   numerical_derivative(activation.forward, x),
                                   rtol=1e-5, atol=1e-8)

    def test_sigmoid_stable_for_large_inputs(self):
        out = Sigmoid()(np.array([-1000.0, 1000.0]))

        assert np.all(np.isfinite(out))

    def test_softmax_sums_to_one(self):
        s = Softmax()(np.array([1000.0, 1001.0, 999.0]))

        assert abs(np.sum(s) - 1.0) < 1e-12
        assert np.argmax(s) == 1

    def test_registry(self):
        assert isinstance(get_activation('relu'), ReLU)
        assert isinstance(get_activation('Leaky-ReLU'), LeakyReLU)
        assert isinstance(get_activation(None), Identity)

    def test_registry_passes_instances_through(self):
        act = Sigmoid()
        assert get_activation(act) is act

    def test_unknown_activation(self):
        with pytest.raises(ValueError, match="Unknown activation"):
            get_activation('swish')

    def test_softmax_rejected_as_layer_activation(self):
        with pytest.raises(ValueError, match="output function"):
            get_activation(Softmax())

    def test_output_functions(self):
        assert isinstance(get_output_function('softmax'), Softmax)
        assert isinstance(get_output_function('identity'), Identity)

    def test_hidden_activation_is_not_an_output_function(self):
        with pytest.raises(ValueError):
            get_output_function('relu')
        with pytest.raises(ValueError):
            get_output_function(ReLU())


class TestLosses:
    """Tests for loss values and gradients."""

    def test_mse_value(self):
        loss = MeanSquaredError()

        assert loss([1.0, 3.0], [0.0, 1.0]) == pytest.approx((1 + 4) / 2)

    def test_mse_gradient(self):
        """Gradient is -2 * (expected - output) / n."""
        loss = MeanSquaredError()
        output = np.array([1.0, 3.0])
        expected = np.array([0.0, 1.0])

        np.testing.assert_allclose(loss.backward(output, expected), [1.0, 2.0])

    def test_mse_gradient_matches_finite_difference(self):
        np.random.seed(3)
        loss = MeanSquaredError()
        output = np.random.randn(5)
        expected = np.random.randn(5)

        numerical = np.zeros(5)
        for i in range(5):
            plus, minus = output.copy(), output.copy()
            plus[i] += 1e-6
            minus[i] -= 1e-6
            numerical[i] = (loss(plus, expected) - loss(minus, expected)) / 2e-6

        np.testing.assert_allclose(loss.backward(output, expected), numerical, rtol=1e-5)

    def test_cross_entropy_value(self):
        """-sum(expected * log(output + 0.01))."""
        loss = CrossEntropy()

        assert loss([0.5, 0.5], [1.0, 0.0]) == pytest.approx(-np.log(0.51))

    def test_cross_entropy_gradient(self):
        """Gradient is output - expected."""
        grad = CrossEntropy().backward(np.array([0.5, 0.5]), np.array([1.0, 0.0]))

        np.testing.assert_allclose(grad, [-0.5, 0.5])

    def test_cross_entropy_finite_at_zero(self):
        assert np.isfinite(CrossEntropy()([0.0, 1.0], [1.0, 0.0]))

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatch):
            MeanSquaredError()([1.0, 2.0], [1.0])
        with pytest.raises(DimensionMismatch):
            CrossEntropy().backward([1.0], [1.0, 0.0])

    def test_registry(self):
        assert isinstance(get_loss('mse'), MeanSquaredError)
        assert isinstance(get_loss('Cross-Entropy'), CrossEntropy)

        with pytest.raises(ValueError, match="Unknown loss"):
            get_loss('hinge')
