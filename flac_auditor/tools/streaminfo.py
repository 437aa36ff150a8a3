"""
Typed STREAMINFO result and the parser for metaflac's text listing.

`metaflac --list --block-type=STREAMINFO` prints a block like:

    METADATA block #0
      type: 0 (STREAMINFO)
      ...
      sample_rate: 44100 Hz
      channels: 2
      bits-per-sample: 16
      total samples: 11556864
      MD5 signature: 0f5c0fa6a3fdd2c7e6c5a4d09d2f1b7a

Each field is matched by its own pattern. A field whose pattern does not
match stays None; a broken or empty listing yields an all-None StreamInfo.
Parsing never raises.
"""

import re
from dataclasses import dataclass


_CHANNELS_RE = re.compile(r"^\s*channels:\s*(\d+)\s*$", re.MULTILINE)
_SAMPLE_RATE_RE = re.compile(r"^\s*sample_rate:\s*(\d+)(?:\s*Hz)?\s*$", re.MULTILINE)
_BIT_DEPTH_RE = re.compile(r"^\s*bits-per-sample:\s*(\d+)\s*$", re.MULTILINE)
_TOTAL_SAMPLES_RE = re.compile(r"^\s*total samples:\s*(\d+)\s*$", re.MULTILINE)
_MD5_RE = re.compile(r"^\s*MD5 signature:\s*([0-9a-fA-F]{32})\s*$", re.MULTILINE)


@dataclass(frozen=True)
class StreamInfo:
    """
    Stream attributes as parsed strings.

    Values are kept as the strings the inspection tool printed, so the
    audit log records exactly what was observed. None means "not available".

    Attributes:
        channels: Channel count, e.g. "2".
        sample_rate: Sample rate in Hz, e.g. "44100".
        bit_depth: Bits per sample, e.g. "16".
        total_samples: Total inter-channel sample count, e.g. "11556864".
        md5: Content checksum (32 lowercase hex chars).
    """
    channels: str | None = None
    sample_rate: str | None = None
    bit_depth: str | None = None
    total_samples: str | None = None
    md5: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any((self.channels, self.sample_rate, self.bit_depth,
                        self.total_samples, self.md5))

    @property
    def bit_depth_int(self) -> int | None:
        if self.bit_depth is None:
            return None
        return int(self.bit_depth)


def _match(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1) if match else None


def parse_streaminfo(text: str | None) -> StreamInfo:
    """
    Parse metaflac STREAMINFO listing text into a StreamInfo.

    Args:
        text: Raw standard output of the inspection tool (may be None).

    Returns:
        StreamInfo with every field whose line was found.

    Example:
        info = parse_streaminfo("  channels: 2\\n  sample_rate: 48000 Hz\\n")
        # StreamInfo(channels='2', sample_rate='48000', bit_depth=None, ...)
    """
    if not text:
        return StreamInfo()

    md5 = _match(_MD5_RE, text)
    return StreamInfo(
        channels=_match(_CHANNELS_RE, text),
        sample_rate=_match(_SAMPLE_RATE_RE, text),
        bit_depth=_match(_BIT_DEPTH_RE, text),
        total_samples=_match(_TOTAL_SAMPLES_RE, text),
        md5=md5.lower() if md5 else None,
    )
