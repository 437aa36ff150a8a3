"""
Collaborator interfaces for flac-auditor.

The pipeline never talks to executables or tag libraries directly. It uses
two abstract interfaces:

    CodecToolkit   - integrity test, structural info, legacy tag handling,
                     decode/fallback decode/encode, tag set and picture
                     block editing
    ImageTranscoder - artwork resize/re-encode

Concrete implementations live in flac_auditor.tools.flac (flac, metaflac,
ffmpeg and mutagen) and flac_auditor.tools.image (Pillow). Tests plug in
scripted fakes.

Contract:
    Implementations never raise for a tool failure. Failures are returned
    as a non-zero ToolResult, None, or an empty list, so a single broken
    file can never abort a run.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


# Block type name used for legacy (ID3) tags
LEGACY_BLOCK_TYPE = "ID3"


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of one external tool invocation.

    Attributes:
        returncode: Process exit status. 0 means success.
        stdout: Captured standard output (decoded text).
        stderr: Captured diagnostic output (decoded text).
        timed_out: True if the invocation was killed on timeout.
    """
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def failure_text(self) -> str:
        """First non-empty diagnostic line, for audit reasons."""
        if self.timed_out:
            return "timed out"
        for stream in (self.stderr, self.stdout):
            for line in stream.splitlines():
                if line.strip():
                    return line.strip()
        return f"exit status {self.returncode}"

    @classmethod
    def success(cls, stdout: str = "") -> "ToolResult":
        return cls(returncode=0, stdout=stdout)

    @classmethod
    def failure(cls, message: str, returncode: int = 1) -> "ToolResult":
        return cls(returncode=returncode, stderr=message)


class CodecToolkit(ABC):
    """
    Audio container engine used by the pipeline stages.

    All paths are absolute. Methods that mutate act on the given path in
    place; the pipeline decides which file (source or output copy) that is.
    """

    @abstractmethod
    def integrity_test(self, path: Path) -> ToolResult:
        """Quiet integrity test. Success is exit status zero only."""

    @abstractmethod
    def read_structural_info(self, path: Path) -> ToolResult:
        """Listing of the STREAMINFO block as free-form text on stdout."""

    @abstractmethod
    def detect_legacy_tag_block(self, path: Path) -> bool:
        """True if a legacy (ID3) tag block is present."""

    @abstractmethod
    def remove_block_by_type(self, path: Path, block_type: str) -> ToolResult:
        """Remove every block of block_type from path, in place."""

    @abstractmethod
    def decode(
        self,
        path: Path,
        out_raw: Path,
        force_overwrite: bool = True,
        continue_on_error: bool = False,
    ) -> ToolResult:
        """Decode path to a raw (WAV) file with the primary decoder."""

    @property
    @abstractmethod
    def has_fallback_decoder(self) -> bool:
        """True if fallback_decode() can be attempted."""

    @abstractmethod
    def fallback_decode(self, path: Path, out_raw: Path, bit_depth: int | None = None) -> ToolResult:
        """Best-effort, error-ignoring, audio-only decode to a raw file."""

    @abstractmethod
    def encode(
        self,
        raw_path: Path,
        out_path: Path,
        max_compression: bool = True,
        verify: bool = True,
    ) -> ToolResult:
        """Encode a raw file to the canonical container at out_path."""

    @abstractmethod
    def export_tag_set(self, path: Path) -> list[tuple[str, str]] | None:
        """Ordered (key, value) tag pairs, or None if tags can't be read."""

    @abstractmethod
    def remove_all_tags(self, path: Path) -> ToolResult:
        """Remove every tag from path."""

    @abstractmethod
    def set_tag(self, path: Path, key: str, value: str) -> ToolResult:
        """Append one tag to path."""

    @abstractmethod
    def list_image_blocks(self, path: Path) -> list[int]:
        """Ordered block indices of embedded pictures (empty on error)."""

    @abstractmethod
    def export_image(self, path: Path, index: int) -> bytes | None:
        """Raw image data of the picture block at index, or None."""

    @abstractmethod
    def remove_image_blocks(self, path: Path) -> ToolResult:
        """Remove all picture blocks from path."""

    @abstractmethod
    def import_image(self, path: Path, data: bytes) -> ToolResult:
        """Add data as a front-cover picture block to path."""


class ImageTranscoder(ABC):
    """Artwork transcoding engine."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """True if transcode() can be used."""

    @abstractmethod
    def transcode(self, data: bytes, max_dimension: int, quality: int) -> bytes | None:
        """
        Re-encode image data as a baseline JPEG.

        The longer side is capped at max_dimension and never upscaled.
        Returns None if the data can't be decoded or encoded.
        """
