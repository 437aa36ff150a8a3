# tests/test_audit_log.py
"""Audit log formatting and append-only writing"""

import csv
import threading
from pathlib import Path

import pytest

from flac_auditor.core.audit_log import (
    AUDIT_LOG_HEADER,
    AuditLog,
    format_header,
    format_record,
    read_logged_sources,
)
from flac_auditor.core.exceptions import AuditLogError
from flac_auditor.pipeline.models import Action, AuditRecord, AuditStatus
from flac_auditor.tools.streaminfo import StreamInfo


INFO = StreamInfo(
    channels="2",
    sample_rate="44100",
    bit_depth="16",
    total_samples="100",
    md5="0f5c0fa6a3fdd2c7e6c5a4d09d2f1b7a",
)


def _record(name: str = "a.flac", **fields) -> AuditRecord:
    values = {
        "source": Path("/music") / name,
        "relative_path": name,
        "status": AuditStatus.OK,
    }
    values.update(fields)
    return AuditRecord(**values)


class TestFormat:
    """Row serialization"""

    def test_header(self):
        assert format_header() == (
            "path,relative_path,status,reason,had_legacy_tag,has_image,channels,"
            "sample_rate,bits_per_sample,total_samples,md5,actions,output_path"
        )

    def test_plain_record(self):
        """Empty reason and actions are still quoted; missing values are empty"""
        assert format_record(_record()) == '/music/a.flac,a.flac,OK,"",false,false,,,,,,"",'

    def test_full_record(self):
        record = _record(
            status=AuditStatus.RECOVERED,
            reason='frame CRC mismatch; "bad" sync',
            had_legacy_tag=True,
            has_image=True,
            stream_info=INFO,
            actions=(Action.DECODED_THROUGH_ERRORS, Action.RE_ENCODED, Action.VERIFIED),
            output_path=Path("/out/a.flac"),
        )
        assert format_record(record) == (
            '/music/a.flac,a.flac,RECOVERED,"frame CRC mismatch; ""bad"" sync",true,true,'
            '2,44100,16,100,0f5c0fa6a3fdd2c7e6c5a4d09d2f1b7a,'
            '"DecodedThroughErrors;ReEncoded;Verified",/out/a.flac'
        )

    def test_special_characters_in_paths(self):
        """Paths are quoted only when they need it, and parse back intact"""
        record = _record(name='Best, "Live".flac', reason="line one\nline two")
        line = format_record(record)

        row = next(csv.reader([line]))
        assert row[0] == '/music/Best, "Live".flac'
        assert row[1] == 'Best, "Live".flac'
        assert row[3] == "line one line two"
        assert len(row) == len(AUDIT_LOG_HEADER)


class TestAuditLog:
    """File handling"""

    def test_header_written_once(self, temp_dir):
        path = temp_dir / "logs" / "audit.csv"

        with AuditLog(path) as log:
            log.append(_record("a.flac"))
        with AuditLog(path) as log:
            log.append(_record("b.flac"))
            assert log.records_written == 1

        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == format_header()
        assert len(lines) == 3
        assert lines.count(format_header()) == 1

    def test_existing_content_kept(self, temp_dir):
        """Appending never truncates what's there"""
        path = temp_dir / "audit.csv"
        path.write_text(format_header() + "\nexisting,row\n", encoding="utf-8")

        with AuditLog(path) as log:
            log.append(_record())

        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[1] == "existing,row"
        assert len(lines) == 3

    def test_empty_file_gets_header(self, temp_dir):
        path = temp_dir / "audit.csv"
        path.touch()
        with AuditLog(path):
            pass
        assert path.read_text(encoding="utf-8") == format_header() + "\n"

    def test_append_when_closed(self, temp_dir):
        log = AuditLog(temp_dir / "audit.csv")
        with pytest.raises(AuditLogError):
            log.append(_record())

    def test_unwritable_location(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("x")
        with pytest.raises(AuditLogError):
            AuditLog(blocker / "audit.csv").open()

    def test_concurrent_appends(self, temp_dir):
        """Rows from several threads are never interleaved"""
        path = temp_dir / "audit.csv"
        with AuditLog(path) as log:
            threads = [
                threading.Thread(
                    target=lambda i=i: [log.append(_record(f"{i}-{n}.flac")) for n in range(50)]
                )
                for i in range(4)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert len(rows) == 201
        assert all(len(row) == len(AUDIT_LOG_HEADER) for row in rows)


class TestReadLoggedSources:
    """Resume support"""

    def test_missing_log(self, temp_dir):
        assert read_logged_sources(temp_dir / "none.csv") == set()

    def test_reads_source_column(self, temp_dir):
        path = temp_dir / "audit.csv"
        with AuditLog(path) as log:
            log.append(_record("a.flac"))
            log.append(_record('x, "y".flac'))

        assert read_logged_sources(path) == {"/music/a.flac", '/music/x, "y".flac'}

    def test_unreadable_log(self, temp_dir):
        path = temp_dir / "audit.csv"
        path.mkdir()
        with pytest.raises(AuditLogError):
            read_logged_sources(path)
