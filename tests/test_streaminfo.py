# tests/test_streaminfo.py
"""STREAMINFO listing parser"""

from flac_auditor.tools.streaminfo import StreamInfo, parse_streaminfo


class TestParseStreaminfo:
    """Parsing metaflac text output"""

    def test_full_listing(self, streaminfo_text):
        """Every field is extracted as the printed string"""
        info = parse_streaminfo(streaminfo_text)
        assert info == StreamInfo(
            channels="2",
            sample_rate="44100",
            bit_depth="16",
            total_samples="11556864",
            md5="0f5c0fa6a3fdd2c7e6c5a4d09d2f1b7a",
        )
        assert not info.is_empty
        assert info.bit_depth_int == 16

    def test_partial_listing(self):
        """Missing lines leave their fields None"""
        info = parse_streaminfo("  channels: 1\n  sample_rate: 96000 Hz\n")
        assert info.channels == "1"
        assert info.sample_rate == "96000"
        assert info.bit_depth is None
        assert info.md5 is None
        assert info.bit_depth_int is None

    def test_md5_lowercased(self):
        info = parse_streaminfo("  MD5 signature: 0F5C0FA6A3FDD2C7E6C5A4D09D2F1B7A\n")
        assert info.md5 == "0f5c0fa6a3fdd2c7e6c5a4d09d2f1b7a"

    def test_empty_and_garbage(self):
        """Nothing parseable never raises"""
        assert parse_streaminfo("").is_empty
        assert parse_streaminfo(None).is_empty
        assert parse_streaminfo("\x00\x01garbage\nchannels: many\n").is_empty
