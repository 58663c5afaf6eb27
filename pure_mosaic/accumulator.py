"""
Floating point accumulation buffer for feathered blending, and the
normalization step that turns it back into a color image.
"""

import numpy as np

_ROUNDOFF = 1e-9


class Accumulator:
    """
    Per-pixel weighted color sums plus total weight.

    The buffer has shape (height, width, channels + 1); the last band holds
    the accumulated weight. It is zero-initialized and only ever increased
    by ``add``.
    """

    def __init__(self, height, width, channels=3):
        """
        Initialize Accumulator.

        Args:
            height: Buffer height in pixels
            width: Buffer width in pixels
            channels: Number of color channels
        """
        if height < 0 or width < 0:
            raise ValueError(f"Invalid accumulator size: {width}x{height}")
        self.buffer = np.zeros((height, width, channels + 1), dtype=np.float64)

    @property
    def height(self):
        return self.buffer.shape[0]

    @property
    def width(self):
        return self.buffer.shape[1]

    @property
    def colors(self):
        return self.buffer[:, :, :-1]

    @property
    def weights(self):
        return self.buffer[:, :, -1]

    def add(self, ys, xs, colors, weights):
        """
        Add weighted colors at destination pixels.

        Args:
            ys, xs: Integer pixel coordinates (N,), without duplicates
            colors: Unweighted colors (N x C)
            weights: Weights (N,), non-negative
        """
        self.buffer[ys, xs, :-1] += colors * weights[:, np.newaxis]
        self.buffer[ys, xs, -1] += weights

    def mean_colors(self, ys, xs):
        """
        Current blended color at the given pixels (black where weight is 0).
        """
        weights = self.buffer[ys, xs, -1]
        sums = self.buffer[ys, xs, :-1]
        safe = np.where(weights > 0, weights, 1.0)
        return np.where((weights > 0)[:, np.newaxis], sums / safe[:, np.newaxis], 0.0)


def normalize_blend(accumulator):
    """
    Divide accumulated colors by accumulated weight.

    Args:
        accumulator: Accumulator, or raw (H x W x C+1) float array

    Returns:
        uint8 image (H x W x C); pixels with zero weight are black
    """
    buffer = accumulator.buffer if isinstance(accumulator, Accumulator) else np.asarray(accumulator)

    sums = buffer[:, :, :-1]
    weights = buffer[:, :, -1:]

    output = np.zeros(sums.shape, dtype=np.uint8)
    valid = weights[:, :, 0] > 0
    if not np.any(valid):
        return output

    # Quotients a few ulps below an integer still floor to that integer
    values = np.floor(sums[valid] / weights[valid] + _ROUNDOFF)
    output[valid] = np.clip(values, 0, 255).astype(np.uint8)

    return output
