"""
Feathered accumulation blending with per-image exposure compensation,
using only NumPy.
"""

import logging

import numpy as np

from .accumulator import Accumulator
from .bounding_box import image_bounding_box
from .transform import as_transform
from .warping import bilinear_sample

logger = logging.getLogger(__name__)

# RGB -> Y (luma) weights
DEFAULT_LUMA_WEIGHTS = (0.299, 0.587, 0.114)

# Accumulator/source luma ratios outside this open range are not treated
# as exposure differences
DEFAULT_LUMA_RATIO_RANGE = (0.5, 2.0)


def _nearest(values):
    """Vectorized round-half-up for non-negative coordinates."""
    return np.floor(values + 0.5).astype(int)


def check_image(image, mask=None):
    """
    Validate a color source image and its optional validity mask.

    Raises:
        ValueError: If the image is not H x W x 3 or the mask does not match
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an RGB image of shape (H, W, 3), got {image.shape}")

    if mask is not None:
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != image.shape[:2]:
            raise ValueError(
                f"Mask shape {mask.shape} does not match image shape {image.shape[:2]}"
            )

    return image, mask


class ImageBlender:
    """
    Adds images one at a time into a shared Accumulator.

    Each image contributes its bilinearly sampled colors, scaled by an
    exposure factor estimated from the overlap with what is already
    accumulated, weighted by a horizontal hat function that ramps to zero
    over ``blend_width`` pixels at the left and right edges of its
    bounding box.
    """

    def __init__(self, blend_width, luma_ratio_range=DEFAULT_LUMA_RATIO_RANGE,
                 luma_weights=DEFAULT_LUMA_WEIGHTS):
        """
        Initialize Image Blender.

        Args:
            blend_width: Width of the feathering ramp in destination pixels (> 0)
            luma_ratio_range: Open (low, high) range of accepted exposure ratios
            luma_weights: RGB weights used to compute luma
        """
        if not blend_width > 0:
            raise ValueError(f"blend_width must be positive, got {blend_width}")

        low, high = luma_ratio_range
        if not 0 <= low < high:
            raise ValueError(f"Invalid luma ratio range: {luma_ratio_range}")

        self.blend_width = float(blend_width)
        self.luma_ratio_range = (float(low), float(high))
        self.luma_weights = np.asarray(luma_weights, dtype=np.float64)

    def feather_weights(self, xs, min_x, max_x):
        """
        Hat-function weights for destination columns.

        Args:
            xs: Destination x coordinates
            min_x: Left edge of the image's bounding box
            max_x: Right edge of the image's bounding box

        Returns:
            Weights in [0, 1], same shape as xs
        """
        xs = np.asarray(xs, dtype=np.float64)
        weights = np.ones_like(xs)

        left = xs < min_x + self.blend_width
        weights[left] = (xs[left] - min_x) / self.blend_width

        # The trailing ramp takes precedence where both ramps overlap
        right = xs > max_x - self.blend_width
        weights[right] = (max_x - xs[right]) / self.blend_width

        return np.clip(weights, 0.0, 1.0)

    def luma(self, colors):
        return colors @ self.luma_weights

    def estimate_luma_scale(self, image, accumulator, xs, ys, src_x, src_y, mask=None):
        """
        Estimate the exposure factor that brings an image in line with the
        accumulated mosaic.

        Every destination pixel whose source point falls inside the image,
        and where both the accumulated color and the source sample hold
        data, gives a ratio (accumulated luma / source luma). Ratios inside
        the accepted range are averaged together with a seed of 1.0.

        Returns:
            Scalar luma scale; 1.0 when no pixel qualifies
        """
        h, w = image.shape[:2]
        inside = (src_x >= 0) & (src_x < w) & (src_y >= 0) & (src_y < h)
        if not np.any(inside):
            return 1.0

        xs, ys = xs[inside], ys[inside]
        src_x, src_y = src_x[inside], src_y[inside]

        acc_colors = accumulator.mean_colors(ys, xs)
        samples = bilinear_sample(image, src_x, src_y)

        if mask is None:
            # Exact black marks pixels without data
            usable = np.any(acc_colors != 0, axis=1) & np.any(samples != 0, axis=1)
        else:
            nx = np.clip(_nearest(src_x), 0, w - 1)
            ny = np.clip(_nearest(src_y), 0, h - 1)
            usable = (accumulator.weights[ys, xs] > 0) & mask[ny, nx]

        luma_acc = self.luma(acc_colors[usable])
        luma_img = self.luma(samples[usable])

        nonzero = luma_img != 0
        ratios = luma_acc[nonzero] / luma_img[nonzero]

        low, high = self.luma_ratio_range
        ratios = ratios[(ratios > low) & (ratios < high)]

        if len(ratios) == 0:
            return 1.0

        return float((1.0 + ratios.sum()) / (1 + len(ratios)))

    def accumulate(self, image, transform, accumulator, mask=None):
        """
        Add a feathered, exposure-compensated copy of an image to the
        accumulator.

        Args:
            image: Source image (H x W x 3)
            transform: Transform or 3x3 matrix mapping image coordinates into
                the accumulator frame
            accumulator: Accumulator, modified in place
            mask: Optional boolean validity mask (H x W); when omitted, exact
                black pixels are treated as holding no data

        Returns:
            The luma scale applied to this image
        """
        image, mask = check_image(image, mask)
        if not isinstance(accumulator, Accumulator):
            raise TypeError(f"Expected an Accumulator, got {type(accumulator).__name__}")

        transform = as_transform(transform)
        inverse = transform.inverse()
        h, w = image.shape[:2]

        min_x, min_y, max_x, max_y = image_bounding_box(image, transform)

        # Only the part of the box that lies on the accumulator
        x_start, x_stop = max(min_x, 0), min(max_x, accumulator.width)
        y_start, y_stop = max(min_y, 0), min(max_y, accumulator.height)
        if x_start >= x_stop or y_start >= y_stop:
            logger.warning(
                f"Bounding box ({min_x}, {min_y}, {max_x}, {max_y}) does not "
                f"intersect the {accumulator.width}x{accumulator.height} accumulator"
            )
            return 1.0

        ys, xs = np.mgrid[y_start:y_stop, x_start:x_stop]
        xs = xs.ravel()
        ys = ys.ravel()

        src = inverse.apply(np.column_stack([xs, ys]))
        src_x, src_y = src[:, 0], src[:, 1]

        # Exposure compensation
        luma_scale = self.estimate_luma_scale(image, accumulator, xs, ys, src_x, src_y, mask)

        # Last row and column are excluded so the bilinear footprint stays in the image
        inside = (src_x >= 0) & (src_x < w - 1) & (src_y >= 0) & (src_y < h - 1)
        xs, ys = xs[inside], ys[inside]
        src_x, src_y = src_x[inside], src_y[inside]

        weights = self.feather_weights(xs, min_x, max_x)

        nx = _nearest(src_x)
        ny = _nearest(src_y)
        if mask is None:
            valid = np.any(image[ny, nx] != 0, axis=1)
        else:
            valid = mask[ny, nx]
        weights[~valid] = 0.0

        colors = np.minimum(bilinear_sample(image, src_x, src_y) * luma_scale, 255.0)
        accumulator.add(ys, xs, colors, weights)

        logger.debug(
            f"Accumulated {len(xs)} pixels from box ({min_x}, {min_y}, {max_x}, {max_y}), "
            f"luma scale {luma_scale:.4f}"
        )

        return luma_scale
