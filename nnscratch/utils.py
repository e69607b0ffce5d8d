"""
Utility Functions
=================

Helpers for the training loops:
- Example-set validation
- Epoch shuffling and minibatch partitioning
- One-hot encoding of class labels
"""

import numpy as np

from .errors import DimensionMismatch


def as_example_set(inputs, expected, input_dim, output_dim):
    """
    Validate an example set and return it as two float64 matrices.

    Args:
        inputs: Sequence of input vectors, shape (N, input_dim)
        expected: Sequence of expected vectors, shape (N, output_dim)

    Returns:
        (X, Y) arrays of shape (N, input_dim) and (N, output_dim)

    Raises:
        DimensionMismatch: on differing counts or vector widths
    """
    X = np.asarray(inputs, dtype=np.float64)
    Y = np.asarray(expected, dtype=np.float64)

    if X.ndim == 1:
        X = X.reshape(1, -1) if X.size == input_dim else X.reshape(-1, 1)
    if Y.ndim == 1:
        Y = Y.reshape(1, -1) if Y.size == output_dim else Y.reshape(-1, 1)

    if X.ndim != 2 or Y.ndim != 2:
        raise DimensionMismatch(f"Examples must be 2D, got inputs {X.shape} and expected {Y.shape}")
    if len(X) != len(Y):
        raise DimensionMismatch(f"Got {len(X)} inputs but {len(Y)} expected vectors")
    if X.shape[1] != input_dim:
        raise DimensionMismatch(f"Inputs have width {X.shape[1]}, network expects {input_dim}")
    if Y.shape[1] != output_dim:
        raise DimensionMismatch(f"Expected vectors have width {Y.shape[1]}, network outputs {output_dim}")

    return X, Y


def shuffled_indices(n_samples, rng):
    """Random permutation of example indices for one epoch."""
    return rng.permutation(n_samples)


def create_minibatches(indices, minibatch_size):
    """
    Partition shuffled indices into blocks of `minibatch_size`.

    The trailing remainder that does not fill a whole block is dropped.

    Yields:
        Index arrays of length minibatch_size
    """
    if minibatch_size < 1:
        raise ValueError(f"minibatch_size must be >= 1, got {minibatch_size}")

    n_full = len(indices) // minibatch_size
    for b in range(n_full):
        yield indices[b * minibatch_size:(b + 1) * minibatch_size]


def one_hot_encode(labels, num_classes=None):
    """
    Convert integer labels to one-hot encoded vectors.

    Args:
        labels: Integer labels, shape (N,)
        num_classes: Number of classes (inferred if None)

    Returns:
        One-hot matrix, shape (N, num_classes)
    """
    labels = np.asarray(labels).astype(int)

    if num_classes is None:
        num_classes = labels.max() + 1

    one_hot = np.zeros((len(labels), num_classes), dtype=np.float64)
    one_hot[np.arange(len(labels)), labels] = 1.0

    return one_hot
