"""
Data models for the audit pipeline.

Design Decisions:
    - AuditRecord is frozen: it is built once, at the end of a file's
      processing, and handed to the audit log writer
    - Status, action and failure vocabularies are str enums so they
      serialize to their token text directly
    - TagSet and PictureAsset are scratch values scoped to one file

Usage:
    from flac_auditor.pipeline.models import AuditRecord, AuditStatus, Action
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from flac_auditor.tools.streaminfo import StreamInfo


class AuditStatus(str, Enum):
    """Terminal status of one audited file."""

    OK = "OK"
    FAIL = "FAIL"
    RECOVERED = "RECOVERED"
    NORMALIZED = "NORMALIZED"
    VERIFY_FAILED = "VERIFY_FAILED"
    RECOVERY_FAILED = "RECOVERY_FAILED"

    @property
    def has_output(self) -> bool:
        return self in (AuditStatus.RECOVERED, AuditStatus.NORMALIZED)

    @property
    def is_failure(self) -> bool:
        return self in (AuditStatus.FAIL, AuditStatus.VERIFY_FAILED, AuditStatus.RECOVERY_FAILED)

    def __str__(self) -> str:
        return self.value


STATUS_DESCRIPTIONS: dict[AuditStatus, str] = {
    AuditStatus.OK: "passed the integrity test, no copy requested",
    AuditStatus.FAIL: "failed the integrity test, no copy produced",
    AuditStatus.RECOVERED: "was failing; re-encoded copy produced and verified",
    AuditStatus.NORMALIZED: "was passing; re-encoded copy produced and verified",
    AuditStatus.VERIFY_FAILED: "copy was produced but failed final verification (discarded)",
    AuditStatus.RECOVERY_FAILED: "primary and fallback decoding both failed",
}


class Action(str, Enum):
    """Action tokens appended to a file's audit trail."""

    LEGACY_TAG_REMOVED = "LegacyTagRemoved"
    LEGACY_TAG_REMOVE_FAILED = "LegacyTagRemoveFailed"
    TAGS_EXPORTED = "TagsExported"
    TAG_EXPORT_FAILED = "TagExportFailed"
    ART_EXPORTED = "ArtExported"
    DECODED = "Decoded"
    DECODED_THROUGH_ERRORS = "DecodedThroughErrors"
    FALLBACK_DECODED = "FallbackDecoded"
    DECODE_FAILED = "DecodeFailed"
    RE_ENCODED = "ReEncoded"
    RE_ENCODE_FAILED = "ReEncodeFailed"
    TAGS_SANITIZED = "TagsSanitized"
    TAG_SANITIZE_FAILED = "TagSanitizeFailed"
    ART_NORMALIZED = "ArtNormalized"
    ART_NORMALIZE_FAILED = "ArtNormalizeFailed"
    VERIFIED = "Verified"
    VERIFY_FAILED = "VerifyFailed"
    UNEXPECTED_ERROR = "UnexpectedError"

    def __str__(self) -> str:
        return self.value


class FailureKind(str, Enum):
    """Failure categories a stage can report."""

    PROBE_UNCERTAINTY = "ProbeUncertainty"
    CONTAINER_SANITIZE = "ContainerSanitizeFailure"
    DECODE = "DecodeFailure"
    ENCODE = "EncodeFailure"
    VERIFY = "VerifyFailure"
    TAG_SANITIZE = "TagSanitizeFailure"
    ARTWORK = "ArtworkFailure"
    UNEXPECTED = "UnexpectedFailure"


class TagSet:
    """
    Tag name -> value mapping with case-insensitive keys.

    Built from the ordered pairs a file exports. When a key appears more
    than once, the last value wins; earlier values of multi-valued tags
    (several GENRE entries, say) are dropped.

    Example:
        tags = TagSet.from_pairs([("Genre", "Rock"), ("GENRE", "Pop")])
        tags.get("genre")   # "Pop"
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    @classmethod
    def from_pairs(cls, pairs: list[tuple[str, str]]) -> "TagSet":
        tag_set = cls()
        for key, value in pairs:
            tag_set.set(key, value)
        return tag_set

    def set(self, key: str, value: str) -> None:
        upper = key.upper()
        # Re-inserting moves the key to the position of its last occurrence
        self._values.pop(upper, None)
        self._values[upper] = value

    def get(self, key: str) -> str | None:
        return self._values.get(key.upper())

    def items(self) -> list[tuple[str, str]]:
        return list(self._values.items())

    def filtered(self, whitelist: tuple[str, ...] | list[str]) -> "TagSet":
        """Return a TagSet with only the whitelisted keys."""
        allowed = {name.upper() for name in whitelist}
        result = TagSet()
        for key, value in self._values.items():
            if key in allowed:
                result.set(key, value)
        return result

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagSet):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"TagSet({self._values!r})"


@dataclass(frozen=True)
class PictureAsset:
    """
    An embedded image exported from a source file.

    Attributes:
        index: Block index of the picture in the source file. Only the
               lowest-indexed picture is ever exported.
        path: Scratch file holding the image bytes.
    """
    index: int
    path: Path


@dataclass(frozen=True)
class AuditRecord:
    """
    One audit log row, created once per processed file.

    Attributes:
        source: Absolute source path.
        relative_path: Source path relative to the scan root.
        status: Terminal status.
        reason: Free-text failure reason ("" if none).
        had_legacy_tag: Legacy tag presence after processing.
        has_image: Picture presence (output copy's if one was produced).
        stream_info: Parsed stream attributes of the source.
        actions: Action tokens, in the order they were applied.
        output_path: Verified output copy, or None.

    Raises:
        ValueError: If status and output_path disagree. RECOVERED and
                    NORMALIZED require an output path; every other status
                    forbids one.
    """
    source: Path
    relative_path: str
    status: AuditStatus
    reason: str = ""
    had_legacy_tag: bool = False
    has_image: bool = False
    stream_info: StreamInfo = field(default_factory=StreamInfo)
    actions: tuple[Action, ...] = ()
    output_path: Path | None = None

    def __post_init__(self) -> None:
        if self.status.has_output and self.output_path is None:
            raise ValueError(f"{self.status} record requires an output path")
        if not self.status.has_output and self.output_path is not None:
            raise ValueError(f"{self.status} record must not carry an output path")
