"""
Bounding boxes of images projected through a transform.
"""

import numpy as np

from .transform import as_transform


def iround(x):
    """Return the closest integer to x, rounding halves away from zero."""
    if x < 0.0:
        return int(x - 0.5)
    return int(x + 0.5)


def image_bounding_box(image, transform):
    """
    Compute the bounding box of an image after projection.

    Only the four corners of the source rectangle are projected, which is
    exact for affine transforms and assumes corner extremality otherwise.

    Args:
        image: Image (H x W x C) or its shape tuple
        transform: Transform or 3x3 matrix mapping image coordinates to
            destination coordinates

    Returns:
        (min_x, min_y, max_x, max_y) as integers in the destination frame
    """
    shape = image.shape if hasattr(image, 'shape') else image
    height, width = shape[:2]

    corners = np.array([
        [0, 0],
        [0, height],
        [width, 0],
        [width, height]
    ], dtype=np.float64)

    projected = as_transform(transform).apply(corners)

    min_x, min_y = projected.min(axis=0)
    max_x, max_y = projected.max(axis=0)

    return iround(min_x), iround(min_y), iround(max_x), iround(max_y)


def union_bounding_box(shape, transforms):
    """
    Union of the bounding boxes of one image shape under several transforms.

    The mins start at +inf and the maxes at 0, so the union always contains
    the destination origin on its max side.

    Returns:
        (min_x, min_y, max_x, max_y); min values are inf for no transforms
    """
    min_x = min_y = float('inf')
    max_x = max_y = 0

    for transform in transforms:
        box = image_bounding_box(shape, transform)
        min_x = min(min_x, box[0])
        min_y = min(min_y, box[1])
        max_x = max(max_x, box[2])
        max_y = max(max_y, box[3])

    return min_x, min_y, max_x, max_y
