# tests/test_flac_toolkit.py
"""mutagen/Pillow-backed collaborators and the tool runner"""

import random
import shutil
import sys
import wave
from io import BytesIO

import pytest
from PIL import Image

from flac_auditor.core.config import ToolsConfig
from flac_auditor.tools.base import LEGACY_BLOCK_TYPE, ToolResult
from flac_auditor.tools import flac as flac_module
from flac_auditor.tools.flac import FlacToolkit, has_id3_tags
from flac_auditor.tools.image import PillowTranscoder
from flac_auditor.tools.runner import EXIT_NOT_FOUND, ToolRunner


@pytest.fixture
def flac_toolkit():
    return FlacToolkit(ToolRunner(timeout=30), ToolsConfig(ffmpeg=None))


@pytest.fixture
def flac_file(temp_dir, flac_bytes):
    path = temp_dir / "track.flac"
    path.write_bytes(flac_bytes())
    return path


class TestLegacyTags:
    """ID3 detection and removal"""

    def test_clean_file(self, flac_file):
        assert has_id3_tags(flac_file) is False

    def test_id3v2_prefix(self, temp_dir, flac_bytes, flac_toolkit):
        path = temp_dir / "id3.flac"
        path.write_bytes(flac_bytes(id3v2=True))
        assert flac_toolkit.detect_legacy_tag_block(path) is True

        result = flac_toolkit.remove_block_by_type(path, LEGACY_BLOCK_TYPE)

        assert result.ok
        assert path.read_bytes()[:4] == b"fLaC"
        assert has_id3_tags(path) is False

    def test_id3v1_trailer(self, temp_dir, flac_bytes):
        path = temp_dir / "v1.flac"
        path.write_bytes(flac_bytes() + b"TAG" + bytes(125))
        assert has_id3_tags(path) is True

    def test_unreadable(self, temp_dir):
        assert has_id3_tags(temp_dir / "missing.flac") is False

    def test_no_fallback_decoder(self, flac_toolkit, flac_file, temp_dir):
        assert flac_toolkit.has_fallback_decoder is False
        assert not flac_toolkit.fallback_decode(flac_file, temp_dir / "out.wav").ok


class TestTags:
    """Vorbis comments through mutagen"""

    def test_untagged_file(self, flac_toolkit, flac_file):
        assert flac_toolkit.export_tag_set(flac_file) == []

    def test_set_export_remove(self, flac_toolkit, flac_file):
        assert flac_toolkit.set_tag(flac_file, "TITLE", "Song").ok
        assert flac_toolkit.set_tag(flac_file, "GENRE", "Rock").ok
        assert flac_toolkit.set_tag(flac_file, "GENRE", "Pop").ok

        assert flac_toolkit.export_tag_set(flac_file) == [
            ("TITLE", "Song"), ("GENRE", "Rock"), ("GENRE", "Pop"),
        ]

        assert flac_toolkit.remove_all_tags(flac_file).ok
        assert flac_toolkit.export_tag_set(flac_file) == []

    def test_not_a_flac_file(self, flac_toolkit, temp_dir):
        path = temp_dir / "junk.flac"
        path.write_bytes(b"\x00" * 64)

        assert flac_toolkit.export_tag_set(path) is None
        assert not flac_toolkit.remove_all_tags(path).ok
        assert flac_toolkit.list_image_blocks(path) == []


class TestPictures:
    """PICTURE blocks through mutagen"""

    def test_import_list_export_remove(self, flac_toolkit, flac_file, image_bytes):
        jpeg = image_bytes(size=(64, 48), fmt="JPEG")
        assert flac_toolkit.list_image_blocks(flac_file) == []

        assert flac_toolkit.import_image(flac_file, jpeg).ok

        indices = flac_toolkit.list_image_blocks(flac_file)
        assert len(indices) == 1
        assert indices[0] >= 1
        assert flac_toolkit.export_image(flac_file, indices[0]) == jpeg

        assert flac_toolkit.remove_image_blocks(flac_file).ok
        assert flac_toolkit.list_image_blocks(flac_file) == []

    def test_import_rejects_garbage(self, flac_toolkit, flac_file):
        assert not flac_toolkit.import_image(flac_file, b"not an image").ok
        assert flac_toolkit.list_image_blocks(flac_file) == []

    def test_export_wrong_index(self, flac_toolkit, flac_file):
        assert flac_toolkit.export_image(flac_file, 0) is None
        assert flac_toolkit.export_image(flac_file, 99) is None


class TestPillowTranscoder:
    """Artwork transcoding"""

    def _open(self, data):
        img = Image.open(BytesIO(data))
        img.load()
        return img

    def test_large_image_resized(self, image_bytes):
        data = PillowTranscoder().transcode(image_bytes(size=(2400, 1600)), 1200, 85)

        img = self._open(data)
        assert img.format == "JPEG"
        assert img.size == (1200, 800)
        assert "progressive" not in img.info
        assert "progression" not in img.info

    def test_small_image_kept(self, image_bytes):
        img = self._open(PillowTranscoder().transcode(image_bytes(size=(300, 300)), 1200, 85))
        assert img.size == (300, 300)

    def test_transparency_flattened(self, image_bytes):
        data = image_bytes(size=(50, 50), mode="RGBA")
        img = self._open(PillowTranscoder().transcode(data, 1200, 85))
        assert img.mode == "RGB"

    def test_garbage(self):
        assert PillowTranscoder().transcode(b"garbage", 1200, 85) is None


class TestToolRunner:
    """Subprocess execution"""

    def test_missing_executable(self):
        result = ToolRunner(timeout=5).run(["definitely-not-an-installed-tool-7f3a"])
        assert result.returncode == EXIT_NOT_FOUND
        assert not result.ok
        assert "not found" in result.failure_text

    def test_captures_output(self):
        result = ToolRunner(timeout=30).run(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"]
        )
        assert result.returncode == 3
        assert result.stdout.strip() == "out"
        assert result.failure_text == "err"

    def test_timeout(self):
        result = ToolRunner(timeout=1).run([sys.executable, "-c", "import time; time.sleep(10)"])
        assert result.timed_out
        assert not result.ok


class RecordingRunner:
    """Stands in for ToolRunner; keeps every command line it is given"""

    def __init__(self) -> None:
        self.commands: list[list[str]] = []

    def run(self, argv) -> ToolResult:
        self.commands.append([str(arg) for arg in argv])
        return ToolResult.success()

    @property
    def last(self) -> list[str]:
        return self.commands[-1]


@pytest.fixture
def recording_runner():
    return RecordingRunner()


@pytest.fixture
def recording_toolkit(recording_runner, monkeypatch):
    monkeypatch.setattr(flac_module, "which", lambda name: f"/usr/bin/{name}" if name else None)
    return FlacToolkit(recording_runner, ToolsConfig(flac="flac", metaflac="metaflac", ffmpeg="ffmpeg"))


class TestCommandLines:
    """Arguments handed to flac, metaflac and ffmpeg"""

    def test_integrity_test(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.integrity_test(temp_dir / "a.flac")
        assert recording_runner.last == ["flac", "-t", "-s", str(temp_dir / "a.flac")]

    def test_read_structural_info(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.read_structural_info(temp_dir / "a.flac")
        assert recording_runner.last == [
            "metaflac", "--list", "--block-type=STREAMINFO", str(temp_dir / "a.flac"),
        ]

    def test_decode_defaults(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.decode(temp_dir / "a.flac", temp_dir / "a.wav")
        assert recording_runner.last == [
            "flac", "-d", "-s", "-f", "-o", str(temp_dir / "a.wav"), str(temp_dir / "a.flac"),
        ]

    def test_decode_continue_on_error(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.decode(
            temp_dir / "a.flac", temp_dir / "a.wav", force_overwrite=False, continue_on_error=True
        )
        argv = recording_runner.last
        assert "-F" in argv
        assert "-f" not in argv
        assert argv[-3:] == ["-o", str(temp_dir / "a.wav"), str(temp_dir / "a.flac")]

    def test_encode_best_verify(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.encode(temp_dir / "a.wav", temp_dir / "b.flac")
        assert recording_runner.last == [
            "flac", "-s", "-f", "--best", "--verify",
            "-o", str(temp_dir / "b.flac"), str(temp_dir / "a.wav"),
        ]

    def test_encode_plain(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.encode(temp_dir / "a.wav", temp_dir / "b.flac", max_compression=False, verify=False)
        argv = recording_runner.last
        assert "--best" not in argv
        assert "--verify" not in argv

    @pytest.mark.parametrize("bit_depth, codec", [
        (8, "pcm_u8"),
        (16, "pcm_s16le"),
        (24, "pcm_s24le"),
        (32, "pcm_s32le"),
        (None, "pcm_s16le"),
    ])
    def test_fallback_decode_codec(self, recording_toolkit, recording_runner, temp_dir, bit_depth, codec):
        recording_toolkit.fallback_decode(temp_dir / "a.flac", temp_dir / "a.wav", bit_depth=bit_depth)
        argv = recording_runner.last
        assert argv[0] == "/usr/bin/ffmpeg"
        assert argv[argv.index("-c:a") + 1] == codec

    def test_fallback_decode_arguments(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.fallback_decode(temp_dir / "a.flac", temp_dir / "a.wav", bit_depth=24)
        assert recording_runner.last == [
            "/usr/bin/ffmpeg", "-nostdin", "-hide_banner", "-v", "error",
            "-err_detect", "ignore_err",
            "-i", str(temp_dir / "a.flac"),
            "-map", "0:a",
            "-c:a", "pcm_s24le",
            "-f", "wav",
            "-y", str(temp_dir / "a.wav"),
        ]

    def test_fallback_decode_without_decoder(self, recording_runner, temp_dir, monkeypatch):
        monkeypatch.setattr(flac_module, "which", lambda name: None)
        toolkit = FlacToolkit(recording_runner, ToolsConfig(ffmpeg="ffmpeg"))

        result = toolkit.fallback_decode(temp_dir / "a.flac", temp_dir / "a.wav")

        assert not result.ok
        assert toolkit.has_fallback_decoder is False
        assert recording_runner.commands == []

    def test_remove_other_block_type(self, recording_toolkit, recording_runner, temp_dir):
        recording_toolkit.remove_block_by_type(temp_dir / "a.flac", "PADDING")
        assert recording_runner.last == [
            "metaflac", "--remove", "--block-type=PADDING", str(temp_dir / "a.flac"),
        ]


def _write_wav(path, seconds: float = 0.25, rate: int = 44100) -> None:
    frames = int(seconds * rate)
    noise = random.Random(7)
    samples = bytearray()
    for _ in range(frames * 2):
        samples += noise.randint(-8000, 8000).to_bytes(2, "little", signed=True)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(2)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(bytes(samples))


@pytest.mark.skipif(shutil.which("flac") is None, reason="flac binary not installed")
class TestFlacRoundTrip:
    """Real flac binary: encode, decode and re-encode"""

    def test_decode_reencode_passes_integrity(self, temp_dir):
        toolkit = FlacToolkit(ToolRunner(timeout=60), ToolsConfig(ffmpeg=None))
        wav = temp_dir / "source.wav"
        _write_wav(wav)
        original = temp_dir / "original.flac"

        assert toolkit.encode(wav, original).ok
        assert toolkit.integrity_test(original).ok

        raw = temp_dir / "decoded.wav"
        assert toolkit.decode(original, raw).ok
        assert raw.stat().st_size > 0

        reencoded = temp_dir / "reencoded.flac"
        assert toolkit.encode(raw, reencoded).ok
        assert toolkit.integrity_test(reencoded).ok
        assert reencoded.read_bytes()[:4] == b"fLaC"

    def test_corrupt_file_fails_integrity(self, temp_dir):
        toolkit = FlacToolkit(ToolRunner(timeout=60), ToolsConfig(ffmpeg=None))
        wav = temp_dir / "source.wav"
        _write_wav(wav)
        path = temp_dir / "track.flac"
        assert toolkit.encode(wav, path).ok

        data = bytearray(path.read_bytes())
        # Noise does not compress, so the tail of the file is frame data
        data[-2000:-1936] = bytes(64)
        path.write_bytes(bytes(data))

        assert not toolkit.integrity_test(path).ok
