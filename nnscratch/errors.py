"""
Errors
======

Exceptions raised by the engine. Shape and dimension problems are detected
before any parameter or gradient buffer is touched, so a failed call leaves
the network exactly as it was.
"""


class NNScratchError(Exception):
    """Base class for all library errors."""


class InvalidShape(NNScratchError, ValueError):
    """A dimension is non-positive, non-integral, or the total size overflows."""


class ShapeMismatch(NNScratchError, ValueError):
    """Element count (or preset array shape) disagrees with the declared shape."""


class DimensionMismatch(NNScratchError, ValueError):
    """An input vector does not have the width a layer or network expects."""


class OutOfRange(NNScratchError, IndexError):
    """A tensor coordinate lies outside its dimension."""


class ConvolutionDimensionMismatch(DimensionMismatch):
    """Convolution input dimensions differ from the configured input dimensions."""
