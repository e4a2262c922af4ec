"""
ForkLedger - Logging Tests
============================
"""

import json
import logging

from fork_ledger.domain.chain_tree import ChainTree
from fork_ledger.logging_setup import (
    JSONFormatter,
    PerformanceLogger,
    AuditLogger,
    get_logger,
)


def _record(message="Block admitted", extra_data=None):
    record = logging.LogRecord(
        name="forkledger.chain",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestFormatters:

    def test_json_formatter(self):
        output = json.loads(JSONFormatter().format(_record(extra_data={"depth": 3})))

        assert output["level"] == "INFO"
        assert output["logger"] == "forkledger.chain"
        assert output["message"] == "Block admitted"
        assert output["extra_data"] == {"depth": 3}
        assert output["timestamp"].endswith("Z")

    def test_json_formatter_without_extra(self):
        formatter = JSONFormatter(include_extra=False)

        output = json.loads(formatter.format(_record(extra_data={"depth": 3})))

        assert "extra_data" not in output


class TestLoggers:

    def test_namespace(self):
        assert get_logger("chain").name == "forkledger.chain"

    def test_performance_logger(self):
        with PerformanceLogger(get_logger("test"), "noop") as perf:
            pass

        assert perf.elapsed_ms >= 0

    def test_audit_trail(self, tmp_path):
        audit = AuditLogger(tmp_path)
        audit.log_block_admitted(1, "ab" * 32, 0)
        audit.log_block_rejected("cd" * 32, "UNKNOWN_PARENT", "missing parent")
        audit.close()

        lines = (tmp_path / "audit.log").read_text().splitlines()
        records = [json.loads(line)["extra_data"] for line in lines]

        assert [r["action"] for r in records] == ["block_admitted", "block_rejected"]
        assert records[1]["code"] == "UNKNOWN_PARENT"

    def test_chain_writes_audit(self, tmp_path, genesis_block, make_block, test_config):
        audit = AuditLogger(tmp_path)
        tree = ChainTree(genesis_block, config=test_config, audit=audit)
        tree.add_block(make_block(genesis_block))
        tree.add_block(make_block("ef" * 32))
        audit.close()

        lines = (tmp_path / "audit.log").read_text().splitlines()

        assert len(lines) == 2
