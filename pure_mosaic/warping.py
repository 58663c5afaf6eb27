"""
Pixel resampling primitives: bilinear sampling at fractional coordinates
and global warping of a whole image through a transform.
"""

import numpy as np
from scipy.ndimage import map_coordinates

from .transform import as_transform


def bilinear_sample(image, x, y):
    """
    Bilinear interpolation of an image at fractional coordinates.

    Coordinates are clipped to the image, so callers are expected to have
    bounds-checked them already.

    Args:
        image: Input image (H x W x C) or (H x W)
        x: X coordinates (any shape)
        y: Y coordinates (same shape as x)

    Returns:
        Interpolated values as float64, shape x.shape + (C,) for color images
    """
    h, w = image.shape[:2]
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    # Get integer coordinates
    x0 = np.clip(np.floor(x).astype(int), 0, w - 1)
    y0 = np.clip(np.floor(y).astype(int), 0, h - 1)
    x1 = np.clip(x0 + 1, 0, w - 1)
    y1 = np.clip(y0 + 1, 0, h - 1)

    # Fractional parts
    fx = np.clip(x - x0, 0.0, 1.0)
    fy = np.clip(y - y0, 0.0, 1.0)

    w00 = (1 - fx) * (1 - fy)
    w01 = (1 - fx) * fy
    w10 = fx * (1 - fy)
    w11 = fx * fy

    if image.ndim == 3:
        w00, w01, w10, w11 = (wt[..., np.newaxis] for wt in (w00, w01, w10, w11))

    pixels = image.astype(np.float64, copy=False)
    return (w00 * pixels[y0, x0] + w01 * pixels[y1, x0] +
            w10 * pixels[y0, x1] + w11 * pixels[y1, x1])


def warp_global(image, transform, output_shape):
    """
    Resample an image through a global transform.

    The transform maps output pixel coordinates to source pixel coordinates,
    i.e. output(x, y) = image(transform(x, y)). Samples falling outside the
    source are black.

    Args:
        image: Input image (H x W x C) or (H x W)
        transform: Transform or 3x3 matrix (output -> source)
        output_shape: Output image shape (height, width)

    Returns:
        Warped image with the dtype of the input
    """
    h, w = output_shape[:2]

    if image.ndim == 2:
        channels = 1
        image = image[:, :, np.newaxis]
        squeeze = True
    else:
        channels = image.shape[2]
        squeeze = False

    output = np.zeros((h, w, channels), dtype=image.dtype)
    if h == 0 or w == 0 or image.shape[0] == 0 or image.shape[1] == 0:
        return output[:, :, 0] if squeeze else output

    # Coordinate grid for the output image
    y_coords, x_coords = np.meshgrid(np.arange(h), np.arange(w), indexing='ij')
    coords = np.stack([x_coords.ravel(), y_coords.ravel()], axis=1)

    src = as_transform(transform).apply(coords)
    src_x = src[:, 0].reshape(h, w)
    src_y = src[:, 1].reshape(h, w)

    for c in range(channels):
        values = map_coordinates(
            image[:, :, c].astype(np.float64),
            [src_y, src_x],
            order=1,
            mode='constant',
            cval=0.0
        )
        if np.issubdtype(image.dtype, np.integer):
            info = np.iinfo(image.dtype)
            values = np.clip(np.rint(values), info.min, info.max)
        output[:, :, c] = values

    return output[:, :, 0] if squeeze else output
