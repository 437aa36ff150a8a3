"""
Collaborator adapters for flac-auditor.

    - base: CodecToolkit / ImageTranscoder interfaces and ToolResult
    - runner: subprocess runner with timeout and concurrency bound
    - flac: CodecToolkit backed by flac, metaflac, ffmpeg and mutagen
    - image: ImageTranscoder backed by Pillow
    - streaminfo: typed STREAMINFO result and text parser

Usage:
    from flac_auditor.tools import FlacToolkit, PillowTranscoder, ToolRunner
"""

from flac_auditor.tools.base import LEGACY_BLOCK_TYPE, CodecToolkit, ImageTranscoder, ToolResult
from flac_auditor.tools.flac import FlacToolkit, has_id3_tags
from flac_auditor.tools.image import PillowTranscoder
from flac_auditor.tools.runner import ToolRunner, which
from flac_auditor.tools.streaminfo import StreamInfo, parse_streaminfo

__all__ = [
    "CodecToolkit",
    "ImageTranscoder",
    "ToolResult",
    "FlacToolkit",
    "LEGACY_BLOCK_TYPE",
    "has_id3_tags",
    "PillowTranscoder",
    "ToolRunner",
    "which",
    "StreamInfo",
    "parse_streaminfo",
]
