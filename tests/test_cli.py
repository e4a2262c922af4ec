"""
ForkLedger - CLI Tests
========================
"""

import json

import pytest
from typer.testing import CliRunner

from fork_ledger.cli.main import app


runner = CliRunner()


@pytest.fixture
def replay_file(tmp_path, genesis_block, make_block, make_tx, alice, bob):
    """File di replay: due blocchi validi, uno orfano, una tx pendente"""
    first = make_block(genesis_block)
    second = make_block(first)
    orphan = make_block("99" * 32)
    pending = make_tx([(genesis_block.coinbase.txid, 0, alice)], [(100, bob)])

    path = tmp_path / "replay.json"
    path.write_text(json.dumps({
        "genesis": genesis_block.to_dict(),
        "blocks": [first.to_dict(), orphan.to_dict(), second.to_dict()],
        "pending": [pending.to_dict()],
    }))
    return path


class TestReplayCommand:

    def test_replay(self, replay_file):
        result = runner.invoke(app, ["replay", str(replay_file)])

        assert result.exit_code == 0, result.output
        assert "admitted" in result.output
        assert "UNKNOWN_PARENT" in result.output
        assert "Best Chain" in result.output

    def test_replay_show_utxos(self, replay_file):
        result = runner.invoke(app, ["replay", str(replay_file), "--show-utxos", "-c", "3"])

        assert result.exit_code == 0, result.output
        assert "UTXO set" in result.output

    def test_replay_audit(self, replay_file, tmp_path):
        audit_dir = tmp_path / "audit"

        result = runner.invoke(app, ["replay", str(replay_file), "--audit-dir", str(audit_dir)])

        assert result.exit_code == 0, result.output
        assert len((audit_dir / "audit.log").read_text().splitlines()) == 3

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["replay", str(tmp_path / "missing.json")])

        assert result.exit_code == 1

    def test_missing_genesis(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"blocks": []}))

        result = runner.invoke(app, ["replay", str(path)])

        assert result.exit_code == 1


class TestOtherCommands:

    def test_config(self):
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "cutoff_age" in result.output

    def test_keygen_save(self, tmp_path):
        target = tmp_path / "key.json"

        result = runner.invoke(app, ["keygen", "--save", str(target)])

        assert result.exit_code == 0, result.output
        assert "private_key" in json.loads(target.read_text())
