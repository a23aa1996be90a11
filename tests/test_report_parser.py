"""Tests for engine report parsing."""

from migratectl.core.report_parser import parse_report, parse_report_file


class TestParseReport:
    """Test statistics extraction from report text."""

    def test_minimal_summary_lines(self):
        """Test the three summary lines with single-space separation."""
        stats = parse_report("Dirs : 10 8 2 0 0 0\nFiles : 100 95 3 0 2 0\nBytes : 5.2g 5.1g\n")

        assert stats.total_dirs == 10
        assert stats.total_files == 100
        assert stats.copied_files == 95
        assert stats.skipped_files == 3
        assert stats.failed_files == 2
        assert stats.extra_files == 0
        assert stats.copied_bytes == "5.1g"
        assert stats.total_bytes == "5.2g"

    def test_full_engine_report(self, sample_report):
        """Test a complete engine report with wide, variable column spacing."""
        stats = parse_report(sample_report)

        assert stats.total_dirs == 10
        assert stats.copied_dirs == 8
        assert stats.total_files == 100
        assert stats.copied_files == 95
        assert stats.failed_files == 2
        assert stats.copied_bytes == "5.1g"

    def test_missing_bytes_line_defaults_to_zero(self):
        """Test that a report without a Bytes line keeps copied bytes at "0"."""
        stats = parse_report("Dirs : 1 1 0 0 0 0\nFiles : 4 4 0 0 0 0\n")

        assert stats.copied_bytes == "0"
        assert stats.total_files == 4

    def test_empty_and_none_content(self):
        """Test that empty input yields all-zero statistics."""
        for content in ("", None):
            stats = parse_report(content)
            assert stats.total_dirs == 0
            assert stats.total_files == 0
            assert stats.copied_bytes == "0"

    def test_malformed_lines_do_not_raise(self):
        """Test truncated statistic lines degrade to zero counters."""
        stats = parse_report("Dirs : 10 8\nFiles : many\nBytes : lots\n")

        assert stats.total_dirs == 0
        assert stats.total_files == 0
        assert stats.copied_bytes == "0"

    def test_placeholder_copied_bytes(self):
        """Test a placeholder in the copied column is reported as zero."""
        stats = parse_report("Bytes : 12.5m *\n")

        assert stats.total_bytes == "12.5m"
        assert stats.copied_bytes == "0"

    def test_unit_in_separate_column(self):
        """Test sizes where the unit is printed apart from the number."""
        stats = parse_report("   Bytes :   15.26 m   15.20 m         0         0         0         0\n")

        assert stats.total_bytes == "15.26m"
        assert stats.copied_bytes == "15.20m"

    def test_raw_byte_counts(self):
        """Test byte-unit output without a suffix."""
        stats = parse_report("   Bytes :  73400320  73400320         0         0         0         0\n")

        assert stats.copied_bytes == "73400320"

    def test_mismatch_parsed_but_not_dumped(self):
        """Test mismatched files are parsed and excluded from serialization."""
        stats = parse_report("Files : 10 5 2 3 0 0\n")

        assert stats.mismatched_files == 3
        assert "mismatched_files" not in stats.model_dump()

    def test_last_block_wins(self):
        """Test that an appended log reports its most recent summary."""
        content = "Files : 10 10 0 0 0 0\nFiles : 20 5 15 0 0 1\n"

        stats = parse_report(content)

        assert stats.total_files == 20
        assert stats.extra_files == 1


class TestParseReportFile:
    """Test parsing from log files."""

    def test_missing_file(self, tmp_path):
        """Test a log that was never written yields zeros."""
        stats = parse_report_file(tmp_path / "absent.log")
        assert stats.total_files == 0

    def test_offset_skips_previous_runs(self, tmp_path):
        """Test that content before the offset is ignored."""
        log = tmp_path / "sync.log"
        previous = "Files : 50 50 0 0 0 0\n"
        log.write_text(previous + "Dirs : 3 1 2 0 0 0\n", encoding="utf-8")

        stats = parse_report_file(log, offset=len(previous.encode()))

        assert stats.total_files == 0
        assert stats.total_dirs == 3
