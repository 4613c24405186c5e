"""
Tests for the state store and the repair ledger.
"""

import json

from smconnect.core.models.ssh import FixRecord
from smconnect.core.persistence.audit import LedgerEntry, RepairLedger
from smconnect.core.persistence.state_file import (
    MIGRATION_NOTICE_SHOWN,
    ConnectorState,
    StateStore,
    load_state,
    save_state,
)

# ── State file ───────────────────────────────────────────────────────


class TestStateFile:
    def test_missing_is_fresh(self, tmp_path):
        state = load_state(tmp_path / "state.json")
        assert state.migration_notice_shown is False
        assert state.values == {}

    def test_roundtrip(self, tmp_path):
        path = tmp_path / "sub" / "state.json"
        save_state(ConnectorState(migration_notice_shown=True, values={"a": 1}), path)

        loaded = load_state(path)

        assert loaded.migration_notice_shown is True
        assert loaded.values == {"a": 1}

    def test_corrupt_is_fresh(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert load_state(path).migration_notice_shown is False

    def test_wrong_shape_is_fresh(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"values": "oops"}))
        assert load_state(path).values == {}

    def test_atomic_write_leaves_no_temp(self, tmp_path):
        path = tmp_path / "state.json"
        save_state(ConnectorState(), path)
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


class TestStateStore:
    def test_default(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        assert store.get("anything", "dflt") == "dflt"
        assert store.get(MIGRATION_NOTICE_SHOWN, False) is False

    def test_named_field(self, tmp_path):
        path = tmp_path / "state.json"
        StateStore(path).set(MIGRATION_NOTICE_SHOWN, True)

        assert StateStore(path).get(MIGRATION_NOTICE_SHOWN) is True
        assert json.loads(path.read_text())["migration_notice_shown"] is True

    def test_free_form_value(self, tmp_path):
        path = tmp_path / "state.json"
        store = StateStore(path)
        store.set("last_alias", "sagemaker")
        assert store.get("last_alias") == "sagemaker"
        assert json.loads(path.read_text())["values"] == {"last_alias": "sagemaker"}

    def test_values_cannot_be_clobbered(self, tmp_path):
        store = StateStore(tmp_path / "state.json")
        store.set("values", "oops")
        assert load_state(store.path).values == {"values": "oops"}


# ── Repair ledger ────────────────────────────────────────────────────


class TestRepairLedger:
    def test_empty(self, tmp_path):
        assert RepairLedger(tmp_path / "repairs.ndjson").read_all() == []

    def test_record_appends(self, tmp_path):
        ledger = RepairLedger(tmp_path / "state" / "repairs.ndjson")
        ledger.record(FixRecord(
            fix_kind="ArnConversion",
            target="/x/script",
            backup_path="/x/script.backup.1",
            message="fixed",
        ))
        ledger.record(FixRecord(fix_kind="WrongHostToken", target="/x/config"))

        entries = ledger.read_all()

        assert [e.fix_kind for e in entries] == ["ArnConversion", "WrongHostToken"]
        assert entries[0].backup_path == "/x/script.backup.1"
        assert entries[0].timestamp

    def test_already_applied_not_recorded(self, tmp_path):
        ledger = RepairLedger(tmp_path / "repairs.ndjson")
        ledger.record(FixRecord(fix_kind="ArnConversion", already_applied=True))
        assert ledger.read_all() == []
        assert not ledger.path.exists()

    def test_one_json_object_per_line(self, tmp_path):
        ledger = RepairLedger(tmp_path / "repairs.ndjson")
        ledger.write(LedgerEntry(fix_kind="A"))
        ledger.write(LedgerEntry(fix_kind="B", context={"n": 1}))

        lines = ledger.path.read_text().splitlines()

        assert len(lines) == 2
        assert json.loads(lines[1])["context"] == {"n": 1}

    def test_corrupt_lines_skipped(self, tmp_path):
        ledger = RepairLedger(tmp_path / "repairs.ndjson")
        ledger.write(LedgerEntry(fix_kind="A"))
        with ledger.path.open("a") as fh:
            fh.write("garbage\n\n")
        ledger.write(LedgerEntry(fix_kind="B"))

        assert [e.fix_kind for e in ledger.read_all()] == ["A", "B"]

    def test_read_recent(self, tmp_path):
        ledger = RepairLedger(tmp_path / "repairs.ndjson")
        for kind in "ABCDE":
            ledger.write(LedgerEntry(fix_kind=kind))
        assert [e.fix_kind for e in ledger.read_recent(2)] == ["D", "E"]

    def test_unwritable_ledger_does_not_raise(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        ledger = RepairLedger(blocker / "repairs.ndjson")
        ledger.write(LedgerEntry(fix_kind="A"))
        assert ledger.read_all() == []
