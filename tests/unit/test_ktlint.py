"""Unit tests for ktlint invocation and report decoding."""

import json
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from ktlint_review.errors import KtlintError, KtlintNotFoundError, KtlintReportError, ReportValidationError
from ktlint_review.ktlint import (
    KtlintRunner,
    LintResult,
    LintViolation,
    load_reports,
    parse_results,
    results_from_data,
)


class TestParseResults:
    """Tests for parse_results."""

    def test_parses_reporter_output(self, sample_report_json: str):
        results = parse_results(sample_report_json)

        assert len(results) == 2
        assert results[0].file == "app/src/main/kotlin/com/example/Model.kt"
        assert results[0].errors[0] == LintViolation(
            line=3,
            column=30,
            message="Missing newline before \")\"",
            rule="standard:wrapping",
        )
        assert len(results[1].errors) == 1

    def test_empty_output(self):
        assert parse_results("") == []
        assert parse_results("  \n") == []

    def test_empty_array(self):
        assert parse_results("[]") == []

    def test_invalid_json(self):
        with pytest.raises(KtlintReportError, match="unable to parse"):
            parse_results("Exception in thread main")

    def test_top_level_must_be_list(self):
        with pytest.raises(KtlintReportError, match="JSON array"):
            parse_results('{"file": "A.kt"}')

    def test_missing_file(self):
        with pytest.raises(KtlintReportError, match="missing 'file'"):
            results_from_data([{"errors": []}])

    def test_invalid_line(self):
        with pytest.raises(KtlintReportError, match="invalid line"):
            results_from_data([{"file": "A.kt", "errors": [{"line": "3", "message": "x"}]}])

    def test_missing_optional_fields(self):
        results = results_from_data([{"file": "A.kt", "errors": [{"line": 2}]}])
        assert results == [LintResult("A.kt", [LintViolation(2, 0, "", "")])]


class TestLoadReports:
    """Tests for load_reports (skip_lint mode)."""

    def test_requires_a_report(self):
        with pytest.raises(KtlintReportError, match="skip_lint"):
            load_reports(None, None)

    def test_missing_report_file(self, tmp_path: Path):
        with pytest.raises(KtlintReportError, match="Couldn't find ktlint result json file"):
            load_reports(str(tmp_path / "missing.json"))

    def test_single_report(self, tmp_path: Path, sample_report_json: str):
        report = tmp_path / "ktlint.json"
        report.write_text(sample_report_json)

        results = load_reports(str(report))

        assert [r.file for r in results] == [
            "app/src/main/kotlin/com/example/Model.kt",
            "app/src/main/kotlin/com/example/Other.kt",
        ]

    def test_pattern_merges_in_sorted_order(self, tmp_path: Path):
        for module in ("b", "a"):
            report_dir = tmp_path / module / "build"
            report_dir.mkdir(parents=True)
            (report_dir / "ktlint.json").write_text(json.dumps([
                {"file": f"{module}/Main.kt", "errors": [{"line": 1, "column": 1, "message": "m", "rule": "r"}]},
            ]))

        results = load_reports(report_files_pattern=str(tmp_path / "**" / "ktlint.json"))

        assert [r.file for r in results] == ["a/Main.kt", "b/Main.kt"]

    def test_pattern_without_matches(self, tmp_path: Path):
        assert load_reports(report_files_pattern=str(tmp_path / "*.json")) == []

    def test_schema_violation(self, tmp_path: Path):
        report = tmp_path / "ktlint.json"
        report.write_text(json.dumps([{"file": "A.kt", "errors": [{"column": 1}]}]))

        with pytest.raises(ReportValidationError) as exc_info:
            load_reports(str(report))

        assert exc_info.value.errors


class TestKtlintRunner:
    """Tests for KtlintRunner."""

    @patch("ktlint_review.ktlint.shutil.which", return_value=None)
    def test_lint_requires_executable(self, mock_which: Mock):
        runner = KtlintRunner()
        with pytest.raises(KtlintNotFoundError, match="Couldn't find ktlint command"):
            runner.lint(["A.kt"])

    @patch("ktlint_review.ktlint.subprocess.run")
    @patch("ktlint_review.ktlint.shutil.which", return_value="/usr/local/bin/ktlint")
    def test_lint_runs_json_reporter(self, mock_which: Mock, mock_run: Mock, sample_report_json: str):
        mock_run.return_value = Mock(returncode=1, stdout=sample_report_json, stderr="")

        results = KtlintRunner().lint(["A.kt", "B.kt"])

        args = mock_run.call_args[0][0]
        assert args == ["ktlint", "--reporter=json", "--relative", "A.kt", "B.kt"]
        assert len(results) == 2

    @patch("ktlint_review.ktlint.subprocess.run")
    @patch("ktlint_review.ktlint.shutil.which", return_value="/usr/local/bin/ktlint")
    def test_lint_skips_without_targets(self, mock_which: Mock, mock_run: Mock):
        assert KtlintRunner().lint([]) == []
        mock_run.assert_not_called()

    @patch("ktlint_review.ktlint.subprocess.run")
    @patch("ktlint_review.ktlint.shutil.which", return_value="/usr/local/bin/ktlint")
    def test_lint_without_filtering_lints_everything(self, mock_which: Mock, mock_run: Mock):
        mock_run.return_value = Mock(returncode=0, stdout="[]", stderr="")

        KtlintRunner().lint([], filtering=False)

        assert mock_run.call_args[0][0] == ["ktlint", "--reporter=json", "--relative"]

    @patch("ktlint_review.ktlint.subprocess.run")
    @patch("ktlint_review.ktlint.shutil.which", return_value="/usr/local/bin/ktlint")
    def test_lint_unexpected_exit_code(self, mock_which: Mock, mock_run: Mock):
        mock_run.return_value = Mock(returncode=2, stdout="", stderr="Invalid option")

        with pytest.raises(KtlintError) as exc_info:
            KtlintRunner().lint(["A.kt"])

        assert exc_info.value.returncode == 2
        assert exc_info.value.stderr == "Invalid option"

    @patch("ktlint_review.ktlint.subprocess.run")
    @patch("ktlint_review.ktlint.shutil.which", return_value="/opt/ktlint")
    def test_format_source_pipes_file(self, mock_which: Mock, mock_run: Mock, tmp_path: Path):
        (tmp_path / "A.kt").write_text("val x=1\n")
        mock_run.return_value = Mock(returncode=0, stdout="val x = 1\n", stderr="")

        formatted = KtlintRunner("/opt/ktlint", cwd=tmp_path).format_source("A.kt")

        assert formatted == "val x = 1\n"
        args = mock_run.call_args[0][0]
        assert args[:3] == ["/opt/ktlint", "--format", "--stdin"]
        assert "--stdin-path=A.kt" in args
        assert mock_run.call_args[1]["input"] == "val x=1\n"

    @patch("ktlint_review.ktlint.subprocess.run")
    @patch("ktlint_review.ktlint.shutil.which", return_value="/opt/ktlint")
    def test_format_source_failure_returns_none(self, mock_which: Mock, mock_run: Mock, tmp_path: Path):
        (tmp_path / "A.kt").write_text("val x=1\n")
        mock_run.return_value = Mock(returncode=3, stdout="", stderr="boom")

        assert KtlintRunner(cwd=tmp_path).format_source("A.kt") is None

    @patch("ktlint_review.ktlint.shutil.which", return_value="/opt/ktlint")
    def test_format_source_missing_file(self, mock_which: Mock, tmp_path: Path):
        assert KtlintRunner(cwd=tmp_path).format_source("Missing.kt") is None
