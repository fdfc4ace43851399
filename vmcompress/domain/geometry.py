import math
from typing import List, Optional, Tuple
from vmcompress.domain.models import DisplayTransform, FrameSize, TargetGeometry

# H.264 with 4:2:0 chroma subsampling needs even dimensions
MIN_DIMENSION = 2

def _floor_even(value: float) -> int:
    return max(MIN_DIMENSION, int(math.floor(value / 2)) * 2)

def display_size(natural_size: FrameSize, transform: DisplayTransform) -> Tuple[float, float]:
    """On-screen size of the track once the display transform is applied."""
    width, height = transform.apply(natural_size.width, natural_size.height)
    return abs(width), abs(height)

def resolve_geometry(
    natural_size: FrameSize,
    transform: DisplayTransform,
    max_dimension: Optional[int] = None,
) -> TargetGeometry:
    """Computes the capped, aspect-preserving, even-aligned output frame size.

    The size is taken in display orientation. When the longest side exceeds
    ``max_dimension`` both axes are scaled down by the same factor; smaller
    sources are never upscaled. ``max_dimension=None`` leaves the size uncapped.
    """
    width, height = display_size(natural_size, transform)

    longest = max(width, height)
    if max_dimension is not None and longest > max_dimension:
        # pin the longest side exactly so float error cannot cost a pixel pair
        if width >= height:
            width, height = float(max_dimension), height * max_dimension / longest
        else:
            width, height = width * max_dimension / longest, float(max_dimension)

    return TargetGeometry(width=_floor_even(width), height=_floor_even(height))

def native_frame_size(geometry: TargetGeometry, transform: DisplayTransform) -> Tuple[int, int]:
    """Size decoded frames are scaled to before the orientation filters run.

    Decoded pixels arrive in the track's native orientation, so quarter turns
    swap the axes; the filters then turn them into ``geometry``.
    """
    if transform.swaps_axes:
        return geometry.height, geometry.width
    return geometry.width, geometry.height

def orientation_filters(transform: DisplayTransform) -> List[Tuple[str, Optional[str]]]:
    """libavfilter chain that bakes the display transform into the pixels.

    The flip comes first, then the clockwise rotation.
    """
    filters: List[Tuple[str, Optional[str]]] = []
    if transform.is_mirrored:
        filters.append(("hflip", None))

    rotation = transform.rotation
    if rotation == 90:
        filters.append(("transpose", "clock"))
    elif rotation == 180:
        filters.extend([("hflip", None), ("vflip", None)])
    elif rotation == 270:
        filters.append(("transpose", "cclock"))
    return filters
