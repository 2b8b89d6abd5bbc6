"""
Tests for the command line interface and configuration loading.
"""

import io
import json
import zipfile

import pytest
from click.testing import CliRunner

from evidence_bank.cli import cli
from evidence_bank.config import AppConfig, load_config


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _CliCase:
    def setup_method(self):
        self.runner = CliRunner()

    def invoke(self, tmp_path, *args):
        db_url = f"sqlite:///{tmp_path / 'bank.db'}"
        result = self.runner.invoke(cli, ["--db", db_url, *args], catch_exceptions=False)
        return result


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestConfig:
    def test_defaults(self):
        config = load_config(environ={})
        assert config == AppConfig()

    def test_file_then_environment(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"threshold": 3, "max_workers": 8, "unknown": True}), encoding="utf-8")
        config = load_config(path, environ={"EVIDENCE_BANK_MAX_WORKERS": "2", "EVIDENCE_BANK_LOG_JSON": "yes"})
        assert config.threshold == 3
        assert config.max_workers == 2
        assert config.log_json is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.json", environ={})

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            load_config(environ={"EVIDENCE_BANK_THRESHOLD": "-1"})
        with pytest.raises(ValueError):
            load_config(environ={"EVIDENCE_BANK_FETCH_TIMEOUT": "soon"})

    def test_fetcher_config(self):
        fetcher_config = AppConfig(fetch_timeout=5.0, user_agent="audit-bot").fetcher_config()
        assert fetcher_config.timeout == 5.0
        assert fetcher_config.user_agent == "audit-bot"


# ---------------------------------------------------------------------------
# evidence / request commands
# ---------------------------------------------------------------------------

class TestRecordCommands(_CliCase):
    def test_add_and_list(self, tmp_path):
        result = self.invoke(tmp_path, "request", "add", "-d", "Q3 cash", "-u", "Finance",
                             "--deadline", "2025-10-10", "--deadline-alt", "15-10-25")
        assert result.exit_code == 0
        assert "Saved request PRM-001" in result.output

        result = self.invoke(tmp_path, "evidence", "add", "-d", "Bank statement", "--request", "PRM-001")
        assert "Saved evidence BKT-001" in result.output

        result = self.invoke(tmp_path, "request", "list", "--json-output")
        requests = json.loads(result.output)
        assert requests[0]["linkedEvidenceIds"] == ["BKT-001"]
        assert requests[0]["deadlineAlt"] == "15-10-25"

        result = self.invoke(tmp_path, "evidence", "show", "BKT-001")
        assert "Request:     PRM-001" in result.output

    def test_invalid_compact_deadline_rejected(self, tmp_path):
        result = self.invoke(tmp_path, "request", "add", "-d", "Bad", "--deadline-alt", "31-02-25")
        assert result.exit_code != 0
        assert "Invalid compact deadline" in result.output

    def test_deadline_with_trailing_text_rejected(self, tmp_path):
        result = self.invoke(tmp_path, "request", "add", "-d", "Bad", "--deadline", "2025-10-10garbage")
        assert result.exit_code != 0
        assert "Invalid deadline" in result.output

    def test_unknown_evidence_link_rejected(self, tmp_path):
        result = self.invoke(tmp_path, "request", "add", "-d", "Cash", "-e", "BKT-404")
        assert result.exit_code == 1
        assert "BKT-404" in result.output

    def test_delete_evidence_cascades(self, tmp_path):
        self.invoke(tmp_path, "evidence", "add", "-d", "A")
        self.invoke(tmp_path, "evidence", "add", "-d", "B")
        self.invoke(tmp_path, "request", "add", "-d", "Cash", "-e", "BKT-001", "-e", "BKT-002")

        result = self.invoke(tmp_path, "evidence", "delete", "BKT-001")
        assert result.exit_code == 0

        result = self.invoke(tmp_path, "request", "list", "--json-output")
        assert json.loads(result.output)[0]["linkedEvidenceIds"] == ["BKT-002"]

    def test_delete_request_cascades(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Cash")
        self.invoke(tmp_path, "evidence", "add", "-d", "A", "--request", "PRM-001")
        self.invoke(tmp_path, "request", "delete", "PRM-001")

        result = self.invoke(tmp_path, "evidence", "list", "--json-output")
        assert json.loads(result.output)[0]["relatedRequestId"] == ""

    def test_fulfill(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Cash")
        result = self.invoke(tmp_path, "request", "fulfill", "PRM-001")
        assert "fulfilled on" in result.output

        result = self.invoke(tmp_path, "request", "fulfill", "PRM-404")
        assert result.exit_code == 0
        assert "not found" in result.output

    def test_link_command(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Cash")
        self.invoke(tmp_path, "evidence", "add", "-d", "A")
        result = self.invoke(tmp_path, "request", "link", "PRM-001", "BKT-001")
        assert "Linked 1 evidence item(s)" in result.output

        result = self.invoke(tmp_path, "request", "link", "PRM-001", "BKT-404")
        assert result.exit_code == 1

    def test_list_query(self, tmp_path):
        self.invoke(tmp_path, "evidence", "add", "-d", "Payroll register", "-u", "HR")
        self.invoke(tmp_path, "evidence", "add", "-d", "Bank statement", "-u", "Finance")
        result = self.invoke(tmp_path, "evidence", "list", "-q", "payroll")
        assert "BKT-001" in result.output
        assert "BKT-002" not in result.output


# ---------------------------------------------------------------------------
# alerts / threshold / stats
# ---------------------------------------------------------------------------

class TestAlertCommands(_CliCase):
    def test_alerts_and_threshold(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Old", "--deadline", "2000-01-01")
        self.invoke(tmp_path, "request", "add", "-d", "Far", "--deadline", "2999-01-01")

        result = self.invoke(tmp_path, "alerts", "--json-output")
        payload = json.loads(result.output)
        assert payload["counts"] == {"approaching": 0, "overdue": 1}
        assert [a["request_id"] for a in payload["alerts"]] == ["PRM-001"]

        result = self.invoke(tmp_path, "threshold", "5")
        assert "set to 5" in result.output
        result = self.invoke(tmp_path, "stats")
        assert "threshold 5d" in result.output
        assert "Overdue:        1" in result.output

    def test_negative_threshold_rejected(self, tmp_path):
        result = self.invoke(tmp_path, "threshold", "--", "-1")
        assert result.exit_code != 0

    def test_digest(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Old", "-p", "Rina", "--deadline", "2000-01-01")
        result = self.invoke(tmp_path, "digest")
        assert "Rina" in result.output
        assert "PRM-001" in result.output


# ---------------------------------------------------------------------------
# bundle / export-json / import-json
# ---------------------------------------------------------------------------

class TestTransferCommands(_CliCase):
    def test_bundle_request_without_links(self, tmp_path):
        self.invoke(tmp_path, "evidence", "add", "-d", "A")
        self.invoke(tmp_path, "evidence", "add", "-d", "B")
        self.invoke(tmp_path, "request", "add", "-d", "Cash", "-e", "BKT-001", "-e", "BKT-002")

        archive = tmp_path / "out.zip"
        result = self.invoke(tmp_path, "bundle", "request", "PRM-001", "-o", str(archive))
        assert result.exit_code == 0
        assert "Failures: 2" in result.output
        with zipfile.ZipFile(io.BytesIO(archive.read_bytes())) as zf:
            assert sorted(zf.namelist()) == ["FAILURES.txt", "MANIFEST.csv"]

    def test_bundle_fulfilled_requires_candidates(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Cash")
        result = self.invoke(tmp_path, "bundle", "fulfilled")
        assert result.exit_code == 1
        assert "No fulfilled request" in result.output

    def test_export_then_import(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Cash")
        export_file = tmp_path / "export.json"
        self.invoke(tmp_path, "export-json", "-o", str(export_file))
        data = json.loads(export_file.read_text(encoding="utf-8"))
        assert [r["id"] for r in data["requests"]] == ["PRM-001"]

        legacy = {"evidence": [{"id": "BKT-007"}], "permintaan": [{"id": "PRM-009", "waktu": "15-10-25"}]}
        import_file = tmp_path / "legacy.json"
        import_file.write_text(json.dumps(legacy), encoding="utf-8")
        result = self.invoke(tmp_path, "import-json", str(import_file))
        assert "Imported 1 evidence item(s) and 1 request(s)" in result.output

        result = self.invoke(tmp_path, "request", "show", "PRM-009")
        assert "Deadline alt: 15-10-25" in result.output

    def test_non_object_record_rejected(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"evidence": ["oops"], "requests": []}), encoding="utf-8")

        result = self.invoke(tmp_path, "import-json", str(bad))
        assert result.exit_code == 1
        assert "Import rejected" in result.output
        assert "not an object" in result.output

    def test_malformed_import_leaves_state(self, tmp_path):
        self.invoke(tmp_path, "request", "add", "-d", "Cash")
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"requests": []}), encoding="utf-8")

        result = self.invoke(tmp_path, "import-json", str(bad))
        assert result.exit_code == 1
        assert "Import rejected" in result.output

        result = self.invoke(tmp_path, "request", "list", "--json-output")
        assert [r["id"] for r in json.loads(result.output)] == ["PRM-001"]
