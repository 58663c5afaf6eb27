"""
Pure implementation of panorama mosaic blending without OpenCV.

This package blends a left-to-right sequence of overlapping images, each
with a projective transform into a shared mosaic frame, using only NumPy
and SciPy.

Main components:
- Transform: 3x3 projective transform value type
- Bounding boxes: projected image extents in the mosaic frame
- ImageBlender: feathered accumulation with exposure compensation
- Accumulator / normalize_blend: weighted sums and their normalization
- MosaicBuilder: full pipeline with 360 drift correction and seam cropping

Example usage:
    from pure_mosaic import PositionedImage, blend_images

    mosaic = blend_images([
        PositionedImage(img1, H1, 'img1.jpg'),
        PositionedImage(img2, H2, 'img2.jpg'),
    ], blend_width=50)
"""

__version__ = '1.0.0'

from .transform import Transform
from .bounding_box import image_bounding_box, union_bounding_box
from .warping import bilinear_sample, warp_global
from .accumulator import Accumulator, normalize_blend
from .blending import ImageBlender
from .mosaic_builder import MosaicBuilder, PositionedImage, blend_images, drift_correction

__all__ = [
    'Transform',
    'image_bounding_box',
    'union_bounding_box',
    'bilinear_sample',
    'warp_global',
    'Accumulator',
    'normalize_blend',
    'ImageBlender',
    'MosaicBuilder',
    'PositionedImage',
    'blend_images',
    'drift_correction',
]
