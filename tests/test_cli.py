"""
Tests for the command line interface.

Verifies trigger parsing, JSON output, SQLite audit persistence and the
exit status on errors.
"""

import argparse
import json
from pathlib import Path

import pytest

from src.engine.cli import main, parse_args, parse_trigger
from src.engine.schema import Severity, TriggerType
from src.storage import SQLiteAuditSink

EXAMPLES_DIR = Path(__file__).parent.parent / "data" / "examples"
LOW_RISK = str(EXAMPLES_DIR / "claim_low_risk.json")


class TestParseTrigger:

    def test_type_only(self):
        trigger = parse_trigger("qa_failure")
        assert trigger.type == TriggerType.QA_FAILURE
        assert trigger.severity == Severity.MEDIUM
        assert trigger.reason == ""

    def test_full(self):
        trigger = parse_trigger("COMPLIANCE_ISSUE:CRITICAL:Late notice: 20 days")
        assert trigger.severity == Severity.CRITICAL
        assert trigger.reason == "Late notice: 20 days"

    def test_unknown_type(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_trigger("BOGUS")

    def test_unknown_severity(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_trigger("GENERIC:SEVERE")

    def test_repeatable_flag(self):
        args = parse_args(["--claim-file", LOW_RISK, "--trigger", "GENERIC", "--trigger", "QA_FAILURE:HIGH"])
        assert [t.type for t in args.trigger] == [TriggerType.GENERIC, TriggerType.QA_FAILURE]


class TestMain:

    def test_writes_output(self, tmp_path):
        output = tmp_path / "out" / "result.json"

        main(["--claim-file", LOW_RISK, "--output", str(output), "--pretty"])

        data = json.loads(output.read_text())
        assert data["claim_id"] == "CLM-2024-0001"
        assert data["routing_decision"] == "AUTO_APPROVE"

    def test_prints_to_stdout(self, capsys):
        main(["--claim-file", LOW_RISK, "--trigger", "QA_FAILURE:HIGH:Estimate mismatch"])

        data = json.loads(capsys.readouterr().out)

        assert data["escalation"]["recommendation"] == "INVESTIGATE"
        assert data["routing_decision"] == "STANDARD_QUEUE"

    def test_summary_on_stderr_with_output_file(self, tmp_path, capsys):
        main(["--claim-file", LOW_RISK, "--output", str(tmp_path / "r.json")])

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Decision Summary: CLM-2024-0001" in captured.err
        assert "AUTO_APPROVE" in captured.err

    def test_no_summary_on_stdout_json(self, capsys):
        main(["--claim-file", LOW_RISK])

        captured = capsys.readouterr()
        assert json.loads(captured.out)["claim_id"] == "CLM-2024-0001"
        assert "Decision Summary" not in captured.err

    def test_audit_db(self, tmp_path):
        db_path = tmp_path / "audit.db"

        main(["--claim-file", LOW_RISK, "--audit-db", str(db_path), "--output", str(tmp_path / "r.json")])

        assert SQLiteAuditSink(db_path).count(action="CLAIM_SCORED") == 1

    def test_config_file(self, tmp_path):
        config_path = tmp_path / "engine.json"
        config_path.write_text(json.dumps({"escalation": {"auto_approve_limit": 1000}}))
        output = tmp_path / "r.json"

        main(["--claim-file", LOW_RISK, "--config-file", str(config_path), "--output", str(output)])

        data = json.loads(output.read_text())
        assert data["escalation"]["decisions"][0]["trigger_type"] == "HIGH_VALUE_CLAIM"
        assert data["risk"]["config_version"] == "2024.1"

    def test_missing_file_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--claim-file", str(tmp_path / "absent.json")])
        assert exc_info.value.code == 1

    def test_invalid_claim_exits(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"claim_id": "CLM-BAD"}))
        with pytest.raises(SystemExit):
            main(["--claim-file", str(path)])
