import pytest
from vmcompress.domain.geometry import display_size, native_frame_size, orientation_filters, resolve_geometry
from vmcompress.domain.models import DisplayTransform, FrameSize, QualityTier, TargetGeometry

IDENTITY = DisplayTransform.identity()

def test_full_hd_low_tier():
    geometry = resolve_geometry(FrameSize(width=1920, height=1080), IDENTITY, 720)
    assert (geometry.width, geometry.height) == (720, 404)

def test_full_hd_portrait_low_tier():
    geometry = resolve_geometry(FrameSize(width=1920, height=1080), DisplayTransform.from_rotation(90), 720)
    assert (geometry.width, geometry.height) == (404, 720)

def test_4k_photo_aspect_medium_tier():
    geometry = resolve_geometry(FrameSize(width=4000, height=3000), IDENTITY, 1080)
    assert geometry.width == 1080
    assert geometry.height == 810
    assert abs(geometry.width / geometry.height - 4 / 3) < 0.01

def test_no_upscaling():
    geometry = resolve_geometry(FrameSize(width=640, height=480), IDENTITY, 1920)
    assert (geometry.width, geometry.height) == (640, 480)

def test_odd_dimensions_are_floored_to_even():
    geometry = resolve_geometry(FrameSize(width=641, height=359), IDENTITY, 1920)
    assert (geometry.width, geometry.height) == (640, 358)

def test_unbounded_keeps_size():
    geometry = resolve_geometry(FrameSize(width=7680, height=4320), IDENTITY, None)
    assert (geometry.width, geometry.height) == (7680, 4320)

def test_rotation_swaps_display_axes():
    assert display_size(FrameSize(width=1920, height=1080), DisplayTransform.from_rotation(270)) == (1080, 1920)
    assert display_size(FrameSize(width=1920, height=1080), DisplayTransform.from_rotation(180)) == (1920, 1080)

def test_mirrored_transform_uses_absolute_size():
    mirror = DisplayTransform(a=-1, b=0, c=0, d=1, tx=1920, ty=0)
    geometry = resolve_geometry(FrameSize(width=1920, height=1080), mirror, 720)
    assert (geometry.width, geometry.height) == (720, 404)

def test_native_frame_size_before_rotation():
    rotated = DisplayTransform.from_rotation(90)
    geometry = resolve_geometry(FrameSize(width=1920, height=1080), rotated, 720)
    assert native_frame_size(geometry, rotated) == (720, 404)
    assert native_frame_size(geometry, IDENTITY) == (404, 720)

@pytest.mark.parametrize("transform,expected", [
    (IDENTITY, []),
    (DisplayTransform.from_rotation(90), [("transpose", "clock")]),
    (DisplayTransform.from_rotation(180), [("hflip", None), ("vflip", None)]),
    (DisplayTransform.from_rotation(270), [("transpose", "cclock")]),
    (DisplayTransform(a=-1, b=0, c=0, d=1), [("hflip", None)]),
    (DisplayTransform(a=1, b=0, c=0, d=-1), [("hflip", None), ("hflip", None), ("vflip", None)]),
])
def test_orientation_filters(transform, expected):
    assert orientation_filters(transform) == expected

@pytest.mark.parametrize("tier", [QualityTier.LOW, QualityTier.MEDIUM, QualityTier.HIGH])
@pytest.mark.parametrize("size", [
    (1920, 1080), (1080, 1920), (4000, 3000), (3840, 2160), (1001, 999), (1000, 1001),
    (721, 721), (5000, 3), (3, 5000), (12345, 6789), (2, 2), (3, 3),
])
@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_geometry_invariants(tier, size, rotation):
    max_dimension = tier.profile.max_dimension
    transform = DisplayTransform.from_rotation(rotation)
    natural = FrameSize(width=size[0], height=size[1])
    geometry = resolve_geometry(natural, transform, max_dimension)
    display_w, display_h = display_size(natural, transform)

    assert geometry.width % 2 == 0 and geometry.height % 2 == 0
    assert geometry.width > 0 and geometry.height > 0
    assert geometry.longest_side <= max(max_dimension, 2)

    if max(display_w, display_h) <= max_dimension:
        # unchanged apart from even rounding
        assert geometry.width == max(2, int(display_w) // 2 * 2)
        assert geometry.height == max(2, int(display_h) // 2 * 2)
    else:
        assert max_dimension - geometry.longest_side <= 1
        if min(display_w, display_h) >= 4:
            scale = max_dimension / max(display_w, display_h)
            assert abs(geometry.width - display_w * scale) < 2
            assert abs(geometry.height - display_h * scale) < 2

def test_target_geometry_rejects_odd_values():
    with pytest.raises(ValueError):
        TargetGeometry(width=721, height=404)
    with pytest.raises(ValueError):
        TargetGeometry(width=0, height=404)
