# tests/test_models.py
"""Data models: tag sets, statuses and audit records"""

from pathlib import Path

import pytest

from flac_auditor.pipeline.models import AuditRecord, AuditStatus, TagSet


class TestTagSet:
    """Case-insensitive tag mapping"""

    def test_last_value_wins(self):
        """Duplicate keys collapse to the last occurrence"""
        tags = TagSet.from_pairs([("Genre", "Rock"), ("title", "Song"), ("GENRE", "Pop")])

        assert len(tags) == 2
        assert tags.get("genre") == "Pop"
        assert tags.items() == [("TITLE", "Song"), ("GENRE", "Pop")]

    def test_filtered(self):
        tags = TagSet.from_pairs([
            ("TITLE", "Song"),
            ("REPLAYGAIN_TRACK_GAIN", "-3 dB"),
            ("artist", "Band"),
        ])
        kept = tags.filtered(("ARTIST", "title"))

        assert kept.items() == [("TITLE", "Song"), ("ARTIST", "Band")]
        assert len(tags) == 3

    def test_equality(self):
        assert TagSet.from_pairs([("a", "1")]) == TagSet.from_pairs([("A", "1")])
        assert TagSet.from_pairs([("a", "1")]) != TagSet.from_pairs([("A", "2")])

    def test_empty(self):
        assert len(TagSet.from_pairs([])) == 0
        assert TagSet().get("TITLE") is None


class TestAuditStatus:
    """Status properties"""

    def test_has_output(self):
        assert {s for s in AuditStatus if s.has_output} == {
            AuditStatus.RECOVERED, AuditStatus.NORMALIZED,
        }

    def test_is_failure(self):
        assert {s for s in AuditStatus if s.is_failure} == {
            AuditStatus.FAIL, AuditStatus.VERIFY_FAILED, AuditStatus.RECOVERY_FAILED,
        }

    def test_str_is_token(self):
        assert str(AuditStatus.RECOVERY_FAILED) == "RECOVERY_FAILED"


class TestAuditRecord:
    """Output path invariant"""

    @pytest.mark.parametrize("status", [AuditStatus.RECOVERED, AuditStatus.NORMALIZED])
    def test_output_required(self, status):
        with pytest.raises(ValueError):
            AuditRecord(source=Path("/m/a.flac"), relative_path="a.flac", status=status)

    @pytest.mark.parametrize("status", [
        AuditStatus.OK, AuditStatus.FAIL,
        AuditStatus.VERIFY_FAILED, AuditStatus.RECOVERY_FAILED,
    ])
    def test_output_forbidden(self, status):
        with pytest.raises(ValueError):
            AuditRecord(
                source=Path("/m/a.flac"),
                relative_path="a.flac",
                status=status,
                output_path=Path("/o/a.flac"),
            )

    def test_valid_record(self):
        record = AuditRecord(
            source=Path("/m/a.flac"),
            relative_path="a.flac",
            status=AuditStatus.NORMALIZED,
            output_path=Path("/o/a.flac"),
        )
        assert record.reason == ""
        assert record.actions == ()
        assert record.stream_info.is_empty
