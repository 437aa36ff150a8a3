"""Test configuration and fixtures"""

import struct
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from flac_auditor.core.config import PipelineConfig
from flac_auditor.pipeline.context import FileContext
from flac_auditor.pipeline.orchestrator import FilePipeline
from flac_auditor.tools.base import CodecToolkit, ImageTranscoder, ToolResult


STREAMINFO_TEXT = """METADATA block #0
  type: 0 (STREAMINFO)
  is last: false
  length: 34
  minimum blocksize: 4096 samples
  maximum blocksize: 4096 samples
  minimum framesize: 14 bytes
  maximum framesize: 12345 bytes
  sample_rate: 44100 Hz
  channels: 2
  bits-per-sample: 16
  total samples: 11556864
  MD5 signature: 0f5c0fa6a3fdd2c7e6c5a4d09d2f1b7a
"""


def build_flac_bytes(
    sample_rate: int = 44100,
    channels: int = 2,
    bits_per_sample: int = 16,
    total_samples: int = 44100,
    id3v2: bool = False,
) -> bytes:
    """
    Minimal FLAC stream: marker, one STREAMINFO block, dummy frame bytes.

    Enough for mutagen to read and rewrite metadata blocks; not decodable.
    """
    info = struct.pack(">HH", 4096, 4096)
    info += (0).to_bytes(3, "big") + (0).to_bytes(3, "big")
    packed = (
        (sample_rate << 44)
        | ((channels - 1) << 41)
        | ((bits_per_sample - 1) << 36)
        | total_samples
    )
    info += packed.to_bytes(8, "big") + bytes(16)
    block_header = bytes([0x80]) + len(info).to_bytes(3, "big")
    data = b"fLaC" + block_header + info + b"\xff\xf8" + bytes(254)

    if id3v2:
        # Empty ID3v2.4 tag with 16 bytes of padding
        data = b"ID3" + bytes([4, 0, 0]) + bytes([0, 0, 0, 16]) + bytes(16) + data
    return data


def _strip_id3v2(path: Path) -> None:
    """Drop a leading ID3v2 tag from the file, as metaflac would"""
    data = path.read_bytes() if path.exists() else b""
    if data[:3] != b"ID3":
        return
    size = 0
    for byte in data[6:10]:
        size = (size << 7) | (byte & 0x7F)
    path.write_bytes(data[10 + size:])


def make_image_bytes(size: tuple[int, int] = (400, 300), fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Solid-color image encoded in memory."""
    color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
    output = BytesIO()
    Image.new(mode, size, color[: len(mode)]).save(output, format=fmt)
    return output.getvalue()


class FakeToolkit(CodecToolkit):
    """
    Scriptable in-memory CodecToolkit.

    Files still live on disk (decode/encode write real files) but every
    tool result is decided by the sets and dicts below. Every call is
    recorded in `calls` as (method name, path).
    """

    def __init__(self) -> None:
        self.failing: set[Path] = set()
        self.legacy: set[Path] = set()
        self.fixed_by_sanitize: set[Path] = set()
        self.fail_legacy_removal = False
        self.fail_decode: set[Path] = set()
        self.fail_fallback: set[Path] = set()
        self.fallback_available = True
        self.fail_encode: set[Path] = set()
        self.fail_tag_removal = False
        self.fail_image_import = False
        self.unreadable_tags: set[Path] = set()
        self.tags: dict[Path, list[tuple[str, str]]] = {}
        self.pictures: dict[Path, list[bytes]] = {}
        self.streaminfo_text = STREAMINFO_TEXT
        self.calls: list[tuple[str, Path]] = []

    def _call(self, name: str, path: Path) -> None:
        self.calls.append((name, path))

    def called(self, name: str) -> list[Path]:
        return [path for call, path in self.calls if call == name]

    def integrity_test(self, path: Path) -> ToolResult:
        self._call("integrity_test", path)
        if path in self.failing or not path.exists():
            return ToolResult(returncode=1, stderr=f"{path.name}: ERROR while decoding data")
        return ToolResult.success()

    def read_structural_info(self, path: Path) -> ToolResult:
        self._call("read_structural_info", path)
        if not path.exists():
            return ToolResult.failure("cannot open file")
        return ToolResult.success(self.streaminfo_text)

    def detect_legacy_tag_block(self, path: Path) -> bool:
        self._call("detect_legacy_tag_block", path)
        return path in self.legacy

    def remove_block_by_type(self, path: Path, block_type: str) -> ToolResult:
        self._call("remove_block_by_type", path)
        if self.fail_legacy_removal:
            return ToolResult.failure("metaflac: cannot write file")
        _strip_id3v2(path)
        self.legacy.discard(path)
        if path in self.fixed_by_sanitize:
            self.failing.discard(path)
        return ToolResult.success()

    def decode(self, path, out_raw, force_overwrite=True, continue_on_error=False) -> ToolResult:
        self._call("decode", path)
        self.last_continue_on_error = continue_on_error
        if path in self.fail_decode:
            return ToolResult(returncode=1, stderr="flac: decoding failed")
        out_raw.write_bytes(b"RIFF" + bytes(64))
        return ToolResult.success()

    @property
    def has_fallback_decoder(self) -> bool:
        return self.fallback_available

    def fallback_decode(self, path, out_raw, bit_depth=None) -> ToolResult:
        self._call("fallback_decode", path)
        if path in self.fail_fallback:
            return ToolResult(returncode=1, stderr="ffmpeg: invalid data")
        out_raw.write_bytes(b"RIFF" + bytes(32))
        return ToolResult.success()

    def encode(self, raw_path, out_path, max_compression=True, verify=True) -> ToolResult:
        self._call("encode", out_path)
        if out_path in self.fail_encode:
            out_path.write_bytes(b"partial")
            return ToolResult(returncode=1, stderr="flac: verify error")
        out_path.write_bytes(b"fLaC" + raw_path.read_bytes())
        self.tags[out_path] = []
        self.pictures[out_path] = []
        return ToolResult.success()

    def export_tag_set(self, path: Path):
        self._call("export_tag_set", path)
        if path in self.unreadable_tags:
            return None
        return list(self.tags.get(path, []))

    def remove_all_tags(self, path: Path) -> ToolResult:
        self._call("remove_all_tags", path)
        if self.fail_tag_removal:
            return ToolResult.failure("cannot write")
        self.tags[path] = []
        return ToolResult.success()

    def set_tag(self, path: Path, key: str, value: str) -> ToolResult:
        self._call("set_tag", path)
        self.tags.setdefault(path, []).append((key, value))
        return ToolResult.success()

    def list_image_blocks(self, path: Path) -> list[int]:
        self._call("list_image_blocks", path)
        # Block 0 is always STREAMINFO
        return [index + 1 for index in range(len(self.pictures.get(path, [])))]

    def export_image(self, path: Path, index: int):
        self._call("export_image", path)
        pictures = self.pictures.get(path, [])
        if 1 <= index <= len(pictures):
            return pictures[index - 1]
        return None

    def remove_image_blocks(self, path: Path) -> ToolResult:
        self._call("remove_image_blocks", path)
        self.pictures[path] = []
        return ToolResult.success()

    def import_image(self, path: Path, data: bytes) -> ToolResult:
        self._call("import_image", path)
        if self.fail_image_import:
            return ToolResult.failure("cannot import")
        self.pictures.setdefault(path, []).append(data)
        return ToolResult.success()


class FakeTranscoder(ImageTranscoder):
    """ImageTranscoder returning a fixed JPEG-looking payload."""

    def __init__(self, available: bool = True, fail: bool = False) -> None:
        self._available = available
        self.fail = fail
        self.calls: list[tuple[int, int]] = []

    @property
    def available(self) -> bool:
        return self._available

    def transcode(self, data: bytes, max_dimension: int, quality: int):
        self.calls.append((max_dimension, quality))
        if self.fail:
            return None
        return b"\xff\xd8normalized\xff\xd9"


@pytest.fixture
def temp_dir(tmp_path):
    """Resolved temporary directory for tests"""
    return tmp_path.resolve()


@pytest.fixture
def library(temp_dir):
    """Input root, output root and scratch parent below temp_dir"""
    input_root = temp_dir / "music"
    output_root = temp_dir / "out"
    scratch = temp_dir / "scratch"
    input_root.mkdir()
    scratch.mkdir()
    return input_root, output_root, scratch


@pytest.fixture
def make_source(library):
    """Factory creating a FLAC file below the input root"""
    input_root, _, _ = library

    def _make(relative: str = "Artist/Album/01 - Track.flac", content: bytes | None = None) -> Path:
        path = input_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_flac_bytes() if content is None else content)
        return path

    return _make


@pytest.fixture
def toolkit():
    return FakeToolkit()


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def make_pipeline(library, toolkit, transcoder):
    """Factory building a FilePipeline over the fake collaborators"""
    input_root, output_root, scratch = library

    def _make(**settings) -> FilePipeline:
        return FilePipeline(
            PipelineConfig(**settings),
            toolkit,
            transcoder,
            input_root=input_root,
            output_root=output_root,
            scratch_parent=scratch,
        )

    return _make


@pytest.fixture
def make_context(library):
    """Factory building a FileContext for stage-level tests"""
    input_root, output_root, scratch = library

    def _make(source: Path, **settings) -> FileContext:
        relative = source.relative_to(input_root).as_posix()
        return FileContext(
            source=source,
            relative_path=relative,
            output_target=output_root / relative,
            config=PipelineConfig(**settings),
            scratch_parent=scratch,
        )

    return _make


@pytest.fixture
def streaminfo_text():
    return STREAMINFO_TEXT


@pytest.fixture
def flac_bytes():
    """Factory for minimal FLAC file contents"""
    return build_flac_bytes


@pytest.fixture
def image_bytes():
    """Factory for encoded test images"""
    return make_image_bytes
