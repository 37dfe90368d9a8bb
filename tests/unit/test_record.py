from __future__ import annotations

import pytest

from roster_import.models.error_pattern import CorrectionState
from roster_import.models.record import Record, UnknownFieldError


def test_create_rejects_unknown_keys(registry):
    with pytest.raises(UnknownFieldError) as exc:
        Record.create(1, {"firstName": "Ann", "shoeSize": "42", "age": 3}, registry)
    assert exc.value.names == ["age", "shoeSize"]
    assert "unknown field(s): age, shoeSize" in str(exc.value)


def test_values_are_text(registry):
    record = Record.create(1, {"firstName": None, "id": 7}, registry)
    assert record.get("firstName") == ""
    assert record.get("id") == "7"
    assert not record.has_value("firstName")
    assert record.get("lastName", "-") == "-"


def test_with_value_returns_new_record(registry):
    record = Record.create(3, {"firstName": "Ann"}, registry)
    updated = record.with_value("firstName", "Anna")
    assert record.get("firstName") == "Ann"
    assert updated.get("firstName") == "Anna"
    assert updated.row_index == 3
    assert record.with_values({"lastName": "Lee"}).to_dict() == {"firstName": "Ann", "lastName": "Lee"}


def test_payload_nests_objects_and_drops_blanks(registry):
    record = Record.create(1, {
        "firstName": "Ann",
        "ssn": " ",
        "bankAccount.accountNumber": "123",
        "bankAccount.registrationNumber": "9",
        "employeeGroups.Waiter": "1",
    }, registry)
    assert record.to_payload(nest=registry.object_parents()) == {
        "firstName": "Ann",
        "bankAccount": {"accountNumber": "123", "registrationNumber": "9"},
        "employeeGroups.Waiter": "1",
    }
    assert record.to_payload()["employeeGroups"] == {"Waiter": "1"}


def test_correction_state_moves_choices():
    state = CorrectionState()
    state.choose("departments:Kichen", "Kitchen")
    assert state.has_choice("departments:Kichen")
    snapshot = state.copy()
    state.mark_resolved("departments:Kichen")
    assert state.to_dict() == {"pending": {}, "resolved": {"departments:Kichen": "Kitchen"}}
    assert snapshot.pending == {"departments:Kichen": "Kitchen"}
    state.clear("missing")
