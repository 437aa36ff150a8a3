"""
FLAC implementation of the CodecToolkit interface.

Tools used:
    - flac: integrity test (-t), decode (-d), encode (--best --verify)
    - metaflac: STREAMINFO listing and removal of native block types
    - ffmpeg (optional): fallback decoder that ignores stream errors
    - mutagen: Vorbis comment and PICTURE block editing, and ID3 handling

Legacy tag blocks:
    The legacy tags that make players reject FLAC files are ID3v2 tags
    prepended before the "fLaC" marker and ID3v1 trailers appended after
    the last frame. metaflac does not address them, so detection scans the
    file head/tail and removal strips both with mutagen.id3.delete(). Every
    other block type is removed with `metaflac --remove --block-type=...`.

Usage:
    runner = ToolRunner(timeout=600, max_concurrent=2)
    toolkit = FlacToolkit(runner, ToolsConfig())
    if not toolkit.integrity_test(path).ok:
        ...
"""

from io import BytesIO
from pathlib import Path

from mutagen import MutagenError
from mutagen.flac import FLAC, Picture
from mutagen.id3 import delete as delete_id3
from PIL import Image, UnidentifiedImageError

from flac_auditor.core.config import ToolsConfig
from flac_auditor.core.logger import get_logger
from flac_auditor.tools.base import LEGACY_BLOCK_TYPE, CodecToolkit, ToolResult
from flac_auditor.tools.runner import ToolRunner, which

logger = get_logger(__name__)


# PICTURE block type: Cover (front)
COVER_FRONT = 3

_ID3V2_MAGIC = b"ID3"
_ID3V1_MAGIC = b"TAG"
_ID3V1_SIZE = 128

# ffmpeg PCM codec per source bit depth for the fallback decode
_PCM_CODECS = {
    8: "pcm_u8",
    16: "pcm_s16le",
    24: "pcm_s24le",
    32: "pcm_s32le",
}


def has_id3_tags(path: Path) -> bool:
    """
    Detect an ID3v2 prefix or ID3v1 trailer.

    Returns False for unreadable files.
    """
    try:
        with open(path, "rb") as f:
            if f.read(3) == _ID3V2_MAGIC:
                return True
            f.seek(0, 2)
            if f.tell() < _ID3V1_SIZE:
                return False
            f.seek(-_ID3V1_SIZE, 2)
            return f.read(3) == _ID3V1_MAGIC
    except OSError:
        return False


class FlacToolkit(CodecToolkit):
    """
    CodecToolkit backed by flac, metaflac, ffmpeg and mutagen.

    Attributes:
        runner: ToolRunner shared by all invocations of a run.
        tools: Executable names and timeout.
    """

    def __init__(self, runner: ToolRunner, tools: ToolsConfig) -> None:
        self.runner = runner
        self.tools = tools
        self._ffmpeg = which(tools.ffmpeg)
        if tools.ffmpeg and self._ffmpeg is None:
            logger.warning(f"Fallback decoder '{tools.ffmpeg}' not found - fallback decoding disabled")

    # -- integrity and inspection -------------------------------------------

    def integrity_test(self, path: Path) -> ToolResult:
        return self.runner.run([self.tools.flac, "-t", "-s", path])

    def read_structural_info(self, path: Path) -> ToolResult:
        return self.runner.run([self.tools.metaflac, "--list", "--block-type=STREAMINFO", path])

    def detect_legacy_tag_block(self, path: Path) -> bool:
        return has_id3_tags(path)

    def remove_block_by_type(self, path: Path, block_type: str) -> ToolResult:
        if block_type.upper() != LEGACY_BLOCK_TYPE:
            return self.runner.run(
                [self.tools.metaflac, "--remove", f"--block-type={block_type}", path]
            )

        try:
            delete_id3(path, delete_v1=True, delete_v2=True)
        except (MutagenError, OSError) as e:
            logger.debug(f"ID3 removal failed for {path}: {e}")
            return ToolResult.failure(f"ID3 removal failed: {e}")
        return ToolResult.success()

    # -- decode / encode ------------------------------------------------------

    def decode(
        self,
        path: Path,
        out_raw: Path,
        force_overwrite: bool = True,
        continue_on_error: bool = False,
    ) -> ToolResult:
        argv = [self.tools.flac, "-d", "-s"]
        if force_overwrite:
            argv.append("-f")
        if continue_on_error:
            argv.append("-F")
        argv += ["-o", out_raw, path]
        return self.runner.run(argv)

    @property
    def has_fallback_decoder(self) -> bool:
        return self._ffmpeg is not None

    def fallback_decode(self, path: Path, out_raw: Path, bit_depth: int | None = None) -> ToolResult:
        if self._ffmpeg is None:
            return ToolResult.failure("no fallback decoder configured")

        codec = _PCM_CODECS.get(bit_depth or 16, "pcm_s16le")
        return self.runner.run([
            self._ffmpeg,
            "-nostdin", "-hide_banner",
            "-v", "error",
            "-err_detect", "ignore_err",
            "-i", path,
            "-map", "0:a",
            "-c:a", codec,
            "-f", "wav",
            "-y", out_raw,
        ])

    def encode(
        self,
        raw_path: Path,
        out_path: Path,
        max_compression: bool = True,
        verify: bool = True,
    ) -> ToolResult:
        argv = [self.tools.flac, "-s", "-f"]
        if max_compression:
            argv.append("--best")
        if verify:
            argv.append("--verify")
        argv += ["-o", out_path, raw_path]
        return self.runner.run(argv)

    # -- tags -------------------------------------------------------------------

    def export_tag_set(self, path: Path) -> list[tuple[str, str]] | None:
        try:
            audio = FLAC(path)
        except (MutagenError, OSError) as e:
            logger.debug(f"Cannot read tags from {path}: {e}")
            return None
        if audio.tags is None:
            return []
        # VCFLACDict iterates over (key, value) pairs in file order
        return [(key, value) for key, value in audio.tags]

    def remove_all_tags(self, path: Path) -> ToolResult:
        try:
            audio = FLAC(path)
            if audio.tags is not None:
                audio.tags.clear()
                audio.save()
        except (MutagenError, OSError) as e:
            return ToolResult.failure(f"remove tags failed: {e}")
        return ToolResult.success()

    def set_tag(self, path: Path, key: str, value: str) -> ToolResult:
        try:
            audio = FLAC(path)
            if audio.tags is None:
                audio.add_tags()
            audio.tags.append((key, value))
            audio.save()
        except (MutagenError, OSError, ValueError) as e:
            return ToolResult.failure(f"set tag {key} failed: {e}")
        return ToolResult.success()

    # -- pictures -----------------------------------------------------------------

    def list_image_blocks(self, path: Path) -> list[int]:
        try:
            audio = FLAC(path)
        except (MutagenError, OSError) as e:
            logger.debug(f"Cannot list pictures in {path}: {e}")
            return []
        return [
            index for index, block in enumerate(audio.metadata_blocks)
            if isinstance(block, Picture)
        ]

    def export_image(self, path: Path, index: int) -> bytes | None:
        try:
            audio = FLAC(path)
            block = audio.metadata_blocks[index]
        except (MutagenError, OSError, IndexError) as e:
            logger.debug(f"Cannot export picture #{index} from {path}: {e}")
            return None
        if not isinstance(block, Picture) or not block.data:
            return None
        return block.data

    def remove_image_blocks(self, path: Path) -> ToolResult:
        try:
            audio = FLAC(path)
            audio.clear_pictures()
            audio.save()
        except (MutagenError, OSError) as e:
            return ToolResult.failure(f"remove pictures failed: {e}")
        return ToolResult.success()

    def import_image(self, path: Path, data: bytes) -> ToolResult:
        picture = Picture()
        picture.type = COVER_FRONT
        picture.mime = "image/jpeg"
        picture.desc = ""
        picture.data = data
        try:
            with Image.open(BytesIO(data)) as img:
                picture.width, picture.height = img.size
                picture.depth = 8 * len(img.getbands())
        except (UnidentifiedImageError, OSError) as e:
            return ToolResult.failure(f"image import failed: {e}")

        try:
            audio = FLAC(path)
            audio.add_picture(picture)
            audio.save()
        except (MutagenError, OSError) as e:
            return ToolResult.failure(f"image import failed: {e}")
        return ToolResult.success()
