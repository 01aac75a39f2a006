import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from aive.domain.errors import ProbeError
from aive.infrastructure.ffprobe import FFprobeAdapter, parse_frame_rate


def mock_process(payload, returncode=0, stderr=b""):
    process = MagicMock()
    stdout = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.returncode = returncode
    return process


def probe(process, path="clip.MP4"):
    with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as mock_exec:
        info = asyncio.run(FFprobeAdapter().get_video_info(path))
    return info, mock_exec


def test_get_video_info_parses_streams():
    payload = {
        "streams": [
            {"codec_type": "audio", "codec_name": "aac"},
            {
                "codec_type": "video",
                "width": 1920,
                "height": 1080,
                "avg_frame_rate": "30000/1001",
                "r_frame_rate": "30000/1001",
            },
        ],
        "format": {"duration": "125.5", "size": "1048576"},
    }
    info, mock_exec = probe(mock_process(payload))

    assert info.duration == 125.5
    assert (info.width, info.height) == (1920, 1080)
    assert info.fps == 29.97
    assert info.size == 1048576
    assert info.format == "mp4"

    args = mock_exec.call_args.args
    assert args[0] == "ffprobe"
    assert "-show_streams" in args and "-show_format" in args
    assert args[-1] == "clip.MP4"


def test_falls_back_to_r_frame_rate():
    payload = {
        "streams": [{"codec_type": "video", "width": 640, "height": 360, "avg_frame_rate": "0/0", "r_frame_rate": "25/1"}],
        "format": {"duration": "10"},
    }
    info, _ = probe(mock_process(payload))
    assert info.fps == 25.0
    assert info.size == 0


def test_no_video_stream():
    payload = {"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}}
    with pytest.raises(ProbeError):
        probe(mock_process(payload))


def test_nonzero_exit():
    with pytest.raises(ProbeError) as exc:
        probe(mock_process(b"", returncode=1, stderr=b"clip.MP4: No such file or directory"))
    assert "No such file" in str(exc.value)


def test_invalid_json():
    with pytest.raises(ProbeError):
        probe(mock_process(b"not json"))


def test_missing_binary():
    with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError())):
        with pytest.raises(ProbeError):
            asyncio.run(FFprobeAdapter("/nonexistent/ffprobe").get_duration("clip.mp4"))


@pytest.mark.parametrize("value,expected", [
    ("30/1", 30.0),
    ("24000/1001", 23.976),
    ("0/0", 0.0),
    ("", 0.0),
    ("25", 25.0),
    ("90000/1", 0.0),
    ("abc", 0.0),
])
def test_parse_frame_rate(value, expected):
    assert parse_frame_rate(value) == expected
