"""
3x3 projective transform value type used throughout the mosaic pipeline.
"""

import numpy as np


class Transform:
    """
    Homogeneous 3x3 transform mapping (x, y, 1) to destination coordinates.

    Transforms compose with ``@``: ``(a @ b).apply(p)`` applies ``b`` first,
    then ``a``.
    """

    __slots__ = ('_matrix',)

    def __init__(self, matrix):
        """
        Initialize Transform.

        Args:
            matrix: 3x3 array-like, or another Transform
        """
        if isinstance(matrix, Transform):
            matrix = matrix.matrix
        matrix = np.array(matrix, dtype=np.float64)

        if matrix.shape != (3, 3):
            raise ValueError(f"Transform must be a 3x3 matrix, got shape {matrix.shape}")

        matrix.setflags(write=False)
        self._matrix = matrix

    @classmethod
    def identity(cls):
        return cls(np.eye(3))

    @classmethod
    def translation(cls, tx, ty):
        return cls([
            [1, 0, tx],
            [0, 1, ty],
            [0, 0, 1]
        ])

    @classmethod
    def scale(cls, sx, sy):
        return cls([
            [sx, 0, 0],
            [0, sy, 0],
            [0, 0, 1]
        ])

    @classmethod
    def shear_y(cls, k):
        """Vertical shear: y' = y + k * x."""
        return cls([
            [1, 0, 0],
            [k, 1, 0],
            [0, 0, 1]
        ])

    @property
    def matrix(self):
        return self._matrix

    def __matmul__(self, other):
        if not isinstance(other, Transform):
            other = Transform(other)
        return Transform(self._matrix @ other.matrix)

    def __eq__(self, other):
        if not isinstance(other, Transform):
            return NotImplemented
        return np.array_equal(self._matrix, other.matrix)

    def __hash__(self):
        return hash(self._matrix.tobytes())

    def __repr__(self):
        return f"Transform({self._matrix.tolist()})"

    def inverse(self):
        """
        Invert the transform.

        Raises:
            ValueError: If the matrix is singular
        """
        try:
            return Transform(np.linalg.inv(self._matrix))
        except np.linalg.LinAlgError as e:
            raise ValueError("Transform is not invertible") from e

    def apply(self, points):
        """
        Apply transform to points.

        Args:
            points: Points to transform (N x 2) or a single (x, y) pair

        Returns:
            Transformed points (N x 2), or a single (x, y) array
        """
        points = np.asarray(points, dtype=np.float64)
        single = points.ndim == 1
        points = np.atleast_2d(points)

        # Convert to homogeneous coordinates
        points_homogeneous = np.hstack([points, np.ones((len(points), 1))])
        transformed = (self._matrix @ points_homogeneous.T).T

        # Homogeneous divide
        transformed = transformed[:, :2] / transformed[:, 2:3]

        return transformed[0] if single else transformed


def as_transform(value):
    """Coerce a 3x3 array-like or Transform into a Transform."""
    if isinstance(value, Transform):
        return value
    return Transform(value)
