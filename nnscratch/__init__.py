"""
nnscratch
=========

A hand-built dense and convolutional neural network engine using only NumPy.
This library covers:
- A fixed-rank N-dimensional Tensor with row-major storage
- Seeded normal weight initialization
- Dense layers and forward-only 2D convolution layers
- Hand-derived backpropagation with L2 weight regularisation
- Gradient descent, minibatch, momentum, Nesterov momentum,
  RMSProp and Nesterov-RMSProp training
"""

from .errors import (NNScratchError, InvalidShape, ShapeMismatch, DimensionMismatch,
                     OutOfRange, ConvolutionDimensionMismatch)
from .tensor import Tensor
from .initializers import Initializer
from .activations import (Identity, ReLU, LeakyReLU, Sigmoid, Tanh, Step, Heaviside,
                          Softmax, get_activation, get_output_function)
from .losses import MeanSquaredError, CrossEntropy, get_loss
from .layers import DenseLayer, ConvolutionLayer, ConvolutionMode
from .optimizers import (GradientDescent, Momentum, NesterovMomentum, RMSProp,
                         NesterovRMSProp, get_optimizer, linear_warm_down)
from .network import Network
from .utils import one_hot_encode

__version__ = "1.0.0"
__all__ = [
    # Errors
    'NNScratchError', 'InvalidShape', 'ShapeMismatch', 'DimensionMismatch',
    'OutOfRange', 'ConvolutionDimensionMismatch',
    # Data
    'Tensor', 'Initializer',
    # Activations
    'Identity', 'ReLU', 'LeakyReLU', 'Sigmoid', 'Tanh', 'Step', 'Heaviside',
    'Softmax', 'get_activation', 'get_output_function',
    # Losses
    'MeanSquaredError', 'CrossEntropy', 'get_loss',
    # Layers
    'DenseLayer', 'ConvolutionLayer', 'ConvolutionMode',
    # Optimizers
    'GradientDescent', 'Momentum', 'NesterovMomentum', 'RMSProp', 'NesterovRMSProp',
    'get_optimizer', 'linear_warm_down',
    # Main class
    'Network',
    # Utilities
    'one_hot_encode',
]
