"""
Unit tests for structured logging.
"""

import json
import logging

import pytest

from htlc_sdk.logging import (
    LogEntry,
    LogLevel,
    StructuredLogger,
    create_audit_logger,
    create_file_logger,
    redact,
)


@pytest.fixture
def logger():
    return StructuredLogger(component="test", logger=logging.getLogger("htlc.test.structured"))


def records(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "htlc.test.structured"]


class TestLogEntry:

    @pytest.mark.unit
    def test_to_dict_drops_none(self):
        entry = LogEntry(timestamp=1.0, level="INFO", message="hi", component="c")
        assert entry.to_dict() == {"timestamp": 1.0, "level": "INFO", "message": "hi", "component": "c"}

    @pytest.mark.unit
    def test_to_json_handles_bytes(self):
        entry = LogEntry(timestamp=1.0, level="INFO", message="hi", component="c", details={"raw": b"\x01"})
        assert json.loads(entry.to_json())["details"]["raw"] == "b'\\x01'"


class TestRedaction:

    @pytest.mark.unit
    @pytest.mark.security
    def test_redact(self):
        out = redact({"secret": "68656c6c6f", "wif": "cVx", "amount_sats": 5})
        assert out == {"secret": "<redacted>", "wif": "<redacted>", "amount_sats": 5}

    @pytest.mark.unit
    @pytest.mark.security
    def test_logger_redacts_details(self, logger, caplog):
        with caplog.at_level(logging.DEBUG, logger="htlc.test.structured"):
            logger.info("claiming", preimage="68656c6c6f", outpoint="aa:0")

        assert "68656c6c6f" not in caplog.text
        entry = records(caplog)[0]
        assert entry["details"]["preimage"] == "<redacted>"
        assert entry["outpoint"] == "aa:0"


class TestStructuredLogger:

    @pytest.mark.unit
    def test_levels(self, logger, caplog):
        with caplog.at_level(logging.DEBUG, logger="htlc.test.structured"):
            logger.debug("a")
            logger.warning("b")

        levels = [r.levelno for r in caplog.records if r.name == "htlc.test.structured"]
        assert levels == [logging.DEBUG, logging.WARNING]

    @pytest.mark.unit
    def test_error_records_exception(self, logger, caplog):
        with caplog.at_level(logging.ERROR, logger="htlc.test.structured"):
            logger.error("broadcast failed", error=ValueError("rejected"))

        entry = records(caplog)[0]
        assert entry["error"] == "rejected"
        assert entry["error_type"] == "ValueError"

    @pytest.mark.unit
    def test_text_output(self, caplog):
        text_logger = StructuredLogger(logger=logging.getLogger("htlc.test.text"), json_output=False)
        with caplog.at_level(logging.INFO, logger="htlc.test.text"):
            text_logger.info("Broadcast", txid="ff" * 32)

        assert caplog.records[-1].getMessage() == f"[INFO] Broadcast txid={'ff' * 32}"

    @pytest.mark.unit
    def test_default_logger_name(self):
        assert StructuredLogger("htlc-wallet")._logger.name == "htlc_sdk.htlc-wallet"

    @pytest.mark.unit
    def test_set_level(self, logger):
        logger.set_level(LogLevel.WARNING)
        assert logging.getLogger("htlc.test.structured").level == logging.WARNING
        logger.set_level(LogLevel.DEBUG)


class TestOperationContext:

    @pytest.mark.unit
    def test_success(self, logger, caplog):
        with caplog.at_level(logging.DEBUG, logger="htlc.test.structured"):
            with logger.operation("deploy", amount_sats=100000) as op:
                op.set_outpoint("aa:0")
                op.set_txid("aa")
                op.add_detail("fee_sats", 1000)

        start, done = records(caplog)
        assert start["message"] == "Starting deploy"
        assert done["message"] == "Completed deploy"
        assert done["txid"] == "aa"
        assert done["outpoint"] == "aa:0"
        assert done["details"] == {"amount_sats": 100000, "fee_sats": 1000}
        assert done["duration_ms"] >= 0

    @pytest.mark.unit
    def test_failure_reraises(self, logger, caplog):
        with caplog.at_level(logging.DEBUG, logger="htlc.test.structured"):
            with pytest.raises(RuntimeError):
                with logger.operation("claim"):
                    raise RuntimeError("node offline")

        failed = records(caplog)[-1]
        assert failed["level"] == "ERROR"
        assert failed["message"] == "Failed claim"
        assert failed["error"] == "node offline"


class TestFactories:

    @pytest.mark.unit
    def test_audit_logger(self):
        entries = []
        audit = create_audit_logger(entries.append, component="htlc-audit-test")
        audit.info("Swap funded", outpoint="bb:0", secret="00")

        assert entries[0]["message"] == "Swap funded"
        assert entries[0]["component"] == "htlc-audit-test"
        assert entries[0]["details"]["secret"] == "<redacted>"

    @pytest.mark.unit
    def test_file_logger(self, tmp_path):
        path = tmp_path / "htlc.log"
        file_logger = create_file_logger(str(path), component="htlc-file-test")
        file_logger.info("Completed refund", txid="cc")
        for handler in logging.getLogger("htlc_sdk.htlc-file-test.file").handlers:
            handler.flush()

        line = path.read_text().strip().splitlines()[-1]
        assert json.loads(line)["txid"] == "cc"
