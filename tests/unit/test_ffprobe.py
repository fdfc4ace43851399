import pytest
import json
from fractions import Fraction
from pathlib import Path
from unittest.mock import patch
from vmcompress.domain.errors import NoVideoTrackError
from vmcompress.infrastructure.ffprobe import FFprobeAdapter

def _video_stream(**overrides):
    stream = {
        "index": 0,
        "codec_name": "h264",
        "codec_type": "video",
        "width": 1920,
        "height": 1080,
        "r_frame_rate": "30/1",
        "avg_frame_rate": "30/1",
    }
    stream.update(overrides)
    return stream

def _audio_stream():
    return {"index": 1, "codec_name": "aac", "codec_type": "audio", "sample_rate": "48000"}

def _probe(output, returncode=0):
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.stdout = json.dumps(output) if isinstance(output, dict) else output
        mock_run.return_value.stderr = "boom"
        mock_run.return_value.returncode = returncode
        return FFprobeAdapter().probe(Path("clip.mov"))

def test_ffprobe_parse_streams():
    asset = _probe({
        "streams": [_video_stream(), _audio_stream()],
        "format": {"duration": "10.0", "size": "12345678"},
    })
    assert asset.natural_size.width == 1920
    assert asset.natural_size.height == 1080
    assert asset.video_codec == "h264"
    assert asset.audio_codec == "aac"
    assert asset.has_audio
    assert asset.frame_rate == Fraction(30)
    assert asset.duration == Fraction(10)
    assert asset.size_bytes == 12345678
    assert asset.transform.rotation == 0

def test_ffprobe_without_audio():
    asset = _probe({"streams": [_video_stream()], "format": {"duration": "3.5"}})
    assert not asset.has_audio
    assert asset.audio_codec is None
    assert asset.duration_seconds == 3.5

def test_ffprobe_falls_back_to_stream_duration_and_r_frame_rate():
    asset = _probe({
        "streams": [_video_stream(avg_frame_rate="0/0", r_frame_rate="25/1", duration="4.0")],
        "format": {"duration": "N/A"},
    })
    assert asset.frame_rate == Fraction(25)
    assert asset.duration == Fraction(4)

def test_ffprobe_display_matrix_rotation():
    asset = _probe({
        "streams": [_video_stream(side_data_list=[{"side_data_type": "Display Matrix", "rotation": -90}])],
        "format": {"duration": "1.0"},
    })
    assert asset.transform.rotation == 90
    assert asset.transform.swaps_axes

def test_ffprobe_rotate_tag():
    asset = _probe({
        "streams": [_video_stream(tags={"rotate": "270"})],
        "format": {"duration": "1.0"},
    })
    assert asset.transform.rotation == 270

def test_ffprobe_skips_cover_art():
    cover = _video_stream(codec_name="mjpeg", width=600, height=600, disposition={"attached_pic": 1})
    asset = _probe({
        "streams": [cover, _video_stream(index=1, width=1280, height=720)],
        "format": {"duration": "1.0"},
    })
    assert asset.natural_size.width == 1280

def test_ffprobe_no_video_stream():
    with pytest.raises(NoVideoTrackError):
        _probe({"streams": [_audio_stream()], "format": {"duration": "1.0"}})

def test_ffprobe_zero_frame_size():
    with pytest.raises(NoVideoTrackError):
        _probe({"streams": [_video_stream(width=0, height=0)], "format": {}})

def test_ffprobe_error():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "error"

        adapter = FFprobeAdapter()
        with pytest.raises(RuntimeError):
            adapter.get_stream_info(Path("test.mp4"))

def test_ffprobe_unreadable_file_is_no_video_track():
    with pytest.raises(NoVideoTrackError) as exc_info:
        _probe({}, returncode=1)
    assert isinstance(exc_info.value.cause, RuntimeError)

def test_ffprobe_garbage_output():
    with pytest.raises(NoVideoTrackError):
        _probe("not json")

def test_ffprobe_uses_configured_binary():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.stdout = json.dumps({"streams": []})
        mock_run.return_value.returncode = 0
        FFprobeAdapter(binary="/opt/ffprobe").get_stream_info(Path("a.mp4"))
        assert mock_run.call_args[0][0][0] == "/opt/ffprobe"
