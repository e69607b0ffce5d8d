"""
Tensor - Fixed-Rank N-Dimensional Array
=======================================

A small N-dimensional array with row-major flattened storage.

Layout:
    dimensions = (d0, d1, ..., d_{R-1})
    strides    = (d1*d2*...*d_{R-1}, ..., d_{R-1}, 1)
    t.index((i0, ..., i_{R-1})) == elements[sum(i_k * stride_k)]

Chained single-coordinate access t[i][j][k] goes through a lightweight
accessor that accumulates the flat offset, so it reads and writes exactly the
same element as t.index((i, j, k)).

The flat storage is a NumPy array, and `array` exposes it reshaped (a view,
not a copy) so layers can use vectorized NumPy operations on tensor data.
"""

import sys
import numbers

import numpy as np

from .errors import InvalidShape, ShapeMismatch, OutOfRange


def _check_coordinate(i, axis, size):
    if isinstance(i, bool) or not isinstance(i, numbers.Integral):
        raise OutOfRange(f"Coordinate {i!r} on axis {axis} is not an integer")
    if not 0 <= i < size:
        raise OutOfRange(f"Coordinate {i} out of range for axis {axis} (size {size})")


def _validate_dimensions(dimensions):
    try:
        dimensions = tuple(dimensions)
    except TypeError:
        raise InvalidShape(f"Dimensions must be a sequence of sizes, got {dimensions!r}")

    if len(dimensions) == 0:
        raise InvalidShape("Tensor rank must be at least 1")

    size = 1
    for d in dimensions:
        if isinstance(d, bool) or not isinstance(d, numbers.Integral):
            raise InvalidShape(f"Dimension {d!r} is not an integer")
        if d <= 0:
            raise InvalidShape(f"Dimension {d} must be positive (dimensions={dimensions})")
        size *= int(d)
        if size > sys.maxsize:
            raise InvalidShape(f"Dimensions {dimensions} overflow the addressable size")

    return tuple(int(d) for d in dimensions), size


def _row_major_strides(dimensions):
    strides = [1] * len(dimensions)
    for k in range(len(dimensions) - 2, -1, -1):
        strides[k] = strides[k + 1] * dimensions[k + 1]
    return tuple(strides)


class Tensor:
    """
    Fixed-rank, dynamically-sized N-dimensional array.

    Args:
        dimensions: Sequence of positive sizes, one per axis
        elements: Optional flat sequence of initial values (row-major),
            copied into the tensor. Defaults to zeros.
        dtype: NumPy dtype of the storage (default: float64)

    Raises:
        InvalidShape: empty, non-positive or overflowing dimensions
        ShapeMismatch: len(elements) != product(dimensions)

    Example:
        >>> t = Tensor((2, 3), [0, 1, 2, 3, 4, 5])
        >>> t[1][2] == t.index((1, 2)) == 5
        True
    """

    __slots__ = ('dimensions', 'strides', 'elements')

    def __init__(self, dimensions, elements=None, dtype=np.float64):
        self.dimensions, size = _validate_dimensions(dimensions)
        self.strides = _row_major_strides(self.dimensions)

        if elements is None:
            self.elements = np.zeros(size, dtype=dtype)
        else:
            flat = np.array(elements, dtype=dtype).reshape(-1)
            if flat.size != size:
                raise ShapeMismatch(
                    f"Got {flat.size} elements for dimensions {self.dimensions} "
                    f"(expected {size})"
                )
            self.elements = flat

    @classmethod
    def zeros(cls, dimensions, dtype=np.float64):
        """Create a zero-filled tensor."""
        return cls(dimensions, dtype=dtype)

    @classmethod
    def from_array(cls, array, dtype=np.float64):
        """Create a tensor that owns a copy of a NumPy array (shape taken from the array)."""
        array = np.asarray(array)
        return cls(array.shape, array.reshape(-1), dtype=dtype)

    @property
    def rank(self):
        return len(self.dimensions)

    @property
    def shape(self):
        return self.dimensions

    @property
    def size(self):
        return self.elements.size

    @property
    def array(self):
        """Reshaped view of the storage. Writes through to the tensor."""
        return self.elements.reshape(self.dimensions)

    def flat_index(self, coords):
        """
        Map a full coordinate tuple to its offset in the flat storage.

        Raises:
            OutOfRange: wrong number of coordinates, or any coordinate that
                is not an integer in [0, dimension)
        """
        coords = tuple(coords)
        if len(coords) != self.rank:
            raise OutOfRange(
                f"Expected {self.rank} coordinates for dimensions {self.dimensions}, "
                f"got {len(coords)}"
            )

        offset = 0
        for axis, (i, d, s) in enumerate(zip(coords, self.dimensions, self.strides)):
            _check_coordinate(i, axis, d)
            offset += int(i) * s
        return offset

    def index(self, coords):
        """Return the scalar stored at `coords`."""
        return self.elements[self.flat_index(coords)].item()

    def set(self, coords, value):
        """Store `value` at `coords`."""
        self.elements[self.flat_index(coords)] = value

    def fill(self, value):
        self.elements.fill(value)

    def copy(self):
        return Tensor(self.dimensions, self.elements, dtype=self.elements.dtype)

    def __getitem__(self, key):
        if isinstance(key, tuple):
            return self.index(key)
        return _TensorAccessor(self, 0, 0)[key]

    def __setitem__(self, key, value):
        if isinstance(key, tuple):
            self.set(key, value)
        elif self.rank == 1:
            self.set((key,), value)
        else:
            raise OutOfRange(
                f"Assignment needs {self.rank} coordinates, got 1; "
                f"use t[i][j]... = value or t[i, j, ...] = value"
            )

    def __len__(self):
        return self.dimensions[0]

    def __eq__(self, other):
        if not isinstance(other, Tensor):
            return NotImplemented
        return (self.dimensions == other.dimensions
                and np.array_equal(self.elements, other.elements))

    __hash__ = None

    def __repr__(self):
        return f"Tensor(dimensions={self.dimensions}, elements={self.elements.tolist()})"


class _TensorAccessor:
    """Partial coordinate into a tensor, produced by chained single indexing."""

    __slots__ = ('_tensor', '_axis', '_offset')

    def __init__(self, tensor, axis, offset):
        self._tensor = tensor
        self._axis = axis
        self._offset = offset

    def _step(self, i):
        tensor = self._tensor
        if self._axis >= tensor.rank:
            raise OutOfRange(f"Too many coordinates for a rank-{tensor.rank} tensor")
        d = tensor.dimensions[self._axis]
        _check_coordinate(i, self._axis, d)
        return self._offset + int(i) * tensor.strides[self._axis]

    def __getitem__(self, i):
        offset = self._step(i)
        if self._axis == self._tensor.rank - 1:
            return self._tensor.elements[offset].item()
        return _TensorAccessor(self._tensor, self._axis + 1, offset)

    def __setitem__(self, i, value):
        if self._axis != self._tensor.rank - 1:
            raise OutOfRange(
                f"Assignment needs {self._tensor.rank} coordinates, got {self._axis + 1}"
            )
        self._tensor.elements[self._step(i)] = value

    def __len__(self):
        return self._tensor.dimensions[self._axis]
