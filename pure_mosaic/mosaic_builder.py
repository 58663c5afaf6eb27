"""
Mosaic assembly: blends a left-to-right sequence of positioned images into
one panorama, and for 360 degree sequences removes the vertical drift and
the duplicated seam.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .accumulator import Accumulator, normalize_blend
from .blending import ImageBlender, check_image
from .bounding_box import union_bounding_box
from .transform import Transform, as_transform
from .warping import warp_global

logger = logging.getLogger(__name__)


@dataclass
class PositionedImage:
    image: np.ndarray                 # H x W x 3, uint8
    transform: Any                    # image -> mosaic frame, Transform or 3x3 matrix
    name: str                         # identifies the capture; equal first/last names mean 360
    mask: Optional[np.ndarray] = None  # explicit validity mask, H x W

    def __post_init__(self):
        self.transform = as_transform(self.transform)
        self.image, self.mask = check_image(self.image, self.mask)


def _positioned(item):
    if isinstance(item, PositionedImage):
        return item
    return PositionedImage(*item)


def drift_correction(start, end, source_height, mosaic_height):
    """
    Affine transform taking out the vertical drift of a 360 panorama.

    The shear follows the line through the first and last image's top-edge
    midpoints; the vertical scale maps the mosaic height back to the source
    image height.

    Args:
        start: (x, y) of the first image's top-edge midpoint
        end: (x, y) of the last image's top-edge midpoint
        source_height: Height of the input images
        mosaic_height: Height of the blended mosaic

    Returns:
        (Transform, slope)
    """
    (x_init, y_init), (x_final, y_final) = start, end
    if x_init > x_final:
        (x_init, y_init), (x_final, y_final) = (x_final, y_final), (x_init, y_init)

    if x_final == x_init:
        logger.warning("First and last images share the same x position, skipping drift correction")
        slope = 0.0
    else:
        slope = -(y_final - y_init) / (x_final - x_init)

    vertical_scale = source_height / mosaic_height if mosaic_height else 1.0
    affine = Transform.shear_y(slope) @ Transform.scale(1.0, vertical_scale)

    return affine, slope


class MosaicBuilder:
    """
    Complete mosaic blending pipeline.

    This class coordinates all components:
    1. Union bounding box of all images in the mosaic frame
    2. Feathered, exposure-compensated accumulation of every image
    3. Normalization of the accumulator
    4. Drift correction and seam cropping for 360 panoramas
    """

    def __init__(self, blend_width, blending_params=None):
        """
        Initialize Mosaic Builder.

        Args:
            blend_width: Width of the feathering ramp in pixels
            blending_params: Extra keyword arguments for ImageBlender
        """
        blending_params = blending_params or {}
        self.blender = ImageBlender(blend_width, **blending_params)

    @property
    def blend_width(self):
        return self.blender.blend_width

    def build(self, positioned_images, return_debug_info=False):
        """
        Blend a sequence of positioned images into a mosaic.

        Args:
            positioned_images: PositionedImage objects or (image, transform,
                name) tuples, ordered left to right; all images share the
                first image's shape
            return_debug_info: If True, also return intermediate results

        Returns:
            result: Final mosaic (uint8); (0, 0, 3) for an empty sequence
            debug_info: (Optional) Dictionary with intermediate results
        """
        entries = [_positioned(item) for item in positioned_images]
        n = len(entries)

        if n == 0:
            result = np.zeros((0, 0, 3), dtype=np.uint8)
            if return_debug_info:
                return result, {}
            return result

        height, width, channels = entries[0].image.shape
        for entry in entries[1:]:
            if entry.image.shape != entries[0].image.shape:
                raise ValueError(
                    f"All images must share the shape {entries[0].image.shape}, "
                    f"'{entry.name}' has {entry.image.shape}"
                )

        is_360 = n > 1 and entries[0].name == entries[-1].name

        # Bounding box of the whole mosaic
        min_x, min_y, max_x, max_y = union_bounding_box(
            entries[0].image.shape, [entry.transform for entry in entries]
        )
        mosaic_width = int(math.ceil(max_x) - math.floor(min_x))
        mosaic_height = int(math.ceil(max_y) - math.floor(min_y))

        logger.info(
            f"Blending {n} images into a {mosaic_width}x{mosaic_height} mosaic"
            f"{' (360 panorama)' if is_360 else ''}"
        )

        accumulator = Accumulator(mosaic_height, mosaic_width, channels)
        offset = Transform.translation(-min_x, -min_y)
        top_center = (0.5 * width, 0.0)

        luma_scales = []
        start = end = None
        for i, entry in enumerate(entries):
            transform = offset @ entry.transform

            luma_scale = self.blender.accumulate(entry.image, transform, accumulator, entry.mask)
            luma_scales.append(luma_scale)
            logger.debug(f"Image {i + 1}/{n} '{entry.name}': luma scale {luma_scale:.4f}")

            if i == 0:
                start = tuple(transform.apply(top_center))
            if i == n - 1:
                end = tuple(transform.apply(top_center))

        composite = normalize_blend(accumulator)

        if is_360:
            affine, slope = drift_correction(start, end, height, mosaic_height)
            output_width = max(mosaic_width - width, 0)
        else:
            affine, slope = Transform.identity(), 0.0
            output_width = mosaic_width

        result = warp_global(composite, affine, (mosaic_height, output_width))
        logger.info(f"Mosaic size: {output_width}x{mosaic_height}")

        if return_debug_info:
            debug_info = {
                'composite': composite,
                'accumulator': accumulator,
                'bounding_box': (min_x, min_y, max_x, max_y),
                'is_360': is_360,
                'drift_slope': slope,
                'affine': affine,
                'luma_scales': luma_scales,
                'endpoints': (start, end),
            }
            return result, debug_info

        return result


def blend_images(positioned_images, blend_width):
    """
    Blend positioned images into a mosaic.

    Args:
        positioned_images: PositionedImage objects or (image, transform, name)
            tuples, ordered left to right
        blend_width: Width of the feathering ramp in pixels

    Returns:
        Final mosaic as a uint8 image
    """
    return MosaicBuilder(blend_width).build(positioned_images)
