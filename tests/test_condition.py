import pytest

from aabhalint.core.condition import evaluate_condition, validate_condition
from aabhalint.core.values import ABSENT, UNKNOWN, DynamicKey, lookup

MANUAL_STORAGE_CONDITION = {
    "all": [
        {"field": "layer", "op": "eq", "value": "Manual"},
        {"field": "pattern", "op": "in", "value": ["physical-document", "paper"]},
        {"field": "manualConfig.offlineStorage", "op": "missing"},
    ]
}


# --- lookup ---

def test_lookup_nested_field():
    assert lookup({"a": {"b": {"c": 1}}}, "a.b.c") == 1


def test_lookup_absent_field():
    assert lookup({"a": {}}, "a.b") is ABSENT
    assert lookup({"a": "text"}, "a.b") is ABSENT


def test_lookup_through_unknown_is_unknown():
    assert lookup({"a": UNKNOWN}, "a.b.c") is UNKNOWN


def test_lookup_missing_key_beside_spread_is_unknown():
    metadata = {"name": "X", DynamicKey("**defaults"): UNKNOWN}
    assert lookup(metadata, "layer") is UNKNOWN
    assert lookup(metadata, "name") == "X"


# --- evaluate_condition ---

def test_triggers_on_manual_document_without_storage():
    metadata = {"layer": "Manual", "pattern": "physical-document", "manualConfig": {}}
    assert evaluate_condition(MANUAL_STORAGE_CONDITION, metadata) is True


def test_no_trigger_when_storage_present():
    metadata = {
        "layer": "Manual",
        "pattern": "physical-document",
        "manualConfig": {"offlineStorage": {"location": "vault"}},
    }
    assert evaluate_condition(MANUAL_STORAGE_CONDITION, metadata) is False


def test_no_trigger_on_other_layer():
    metadata = {"layer": "Backend", "pattern": "physical-document"}
    assert evaluate_condition(MANUAL_STORAGE_CONDITION, metadata) is False


def test_missing_field_in_comparison_returns_false():
    assert evaluate_condition({"field": "layer", "op": "eq", "value": "Manual"}, {}) is False
    assert evaluate_condition({"field": "layer", "op": "ne", "value": "Manual"}, {}) is False


def test_field_present_but_none_still_evaluates():
    """A field explicitly set to None should still be compared, not short-circuited."""
    condition = {"field": "x", "op": "eq", "value": None}
    assert evaluate_condition(condition, {"x": None}) is True


def test_any_condition():
    condition = {
        "any": [
            {"field": "a", "op": "eq", "value": 1},
            {"field": "b", "op": "eq", "value": 2},
        ]
    }
    assert evaluate_condition(condition, {"a": 1, "b": 99}) is True
    assert evaluate_condition(condition, {"a": 99, "b": 2}) is True
    assert evaluate_condition(condition, {"a": 99, "b": 99}) is False


@pytest.mark.parametrize("value, expected", [
    (None, True),
    ("", True),
    ("   ", True),
    ([], True),
    ({}, True),
    (0, False),
    (False, False),
    ("x", False),
    ([UNKNOWN], False),
    ({DynamicKey("**more"): UNKNOWN}, False),
])
def test_missing_operator(value, expected):
    assert evaluate_condition({"field": "f", "op": "missing"}, {"f": value}) is expected
    assert evaluate_condition({"field": "f", "op": "present"}, {"f": value}) is (not expected)


def test_missing_operator_on_absent_field():
    assert evaluate_condition({"field": "f", "op": "missing"}, {}) is True


def test_absent_and_empty_operators():
    assert evaluate_condition({"field": "f", "op": "absent"}, {}) is True
    assert evaluate_condition({"field": "f", "op": "absent"}, {"f": None}) is True
    assert evaluate_condition({"field": "f", "op": "absent"}, {"f": []}) is False
    assert evaluate_condition({"field": "f", "op": "empty"}, {"f": []}) is True
    assert evaluate_condition({"field": "f", "op": "empty"}, {"f": " "}) is True
    assert evaluate_condition({"field": "f", "op": "empty"}, {}) is False
    assert evaluate_condition({"field": "f", "op": "empty"}, {"f": None}) is False


def test_not_matches_operator():
    condition = {"field": "event", "op": "not_matches", "value": "ed$"}
    assert evaluate_condition(condition, {"event": "account.create"}) is True
    assert evaluate_condition(condition, {"event": "account.created"}) is False
    assert evaluate_condition(condition, {"event": 3}) is False


def test_ordering_operators():
    ascending = {"field": "t", "op": "not_ascending", "value": ["critical", "warning", "healthy"]}
    descending = {"field": "t", "op": "not_descending", "value": ["critical", "warning", "healthy"]}
    good_up = {"t": {"critical": 30, "warning": 50, "healthy": 65}}
    good_down = {"t": {"critical": 3.0, "warning": 2.5, "healthy": 2.0}}

    assert evaluate_condition(ascending, good_up) is False
    assert evaluate_condition(ascending, good_down) is True
    assert evaluate_condition(descending, good_down) is False
    assert evaluate_condition(descending, good_up) is True
    # Incomplete thresholds cannot be judged
    assert evaluate_condition(ascending, {"t": {"critical": 30}}) is False


# --- unknown values ---

def test_unknown_field_is_undetermined():
    for op in ("missing", "present", "absent", "empty"):
        assert evaluate_condition({"field": "f", "op": op}, {"f": UNKNOWN}) is None
    assert evaluate_condition({"field": "f", "op": "eq", "value": 1}, {"f": UNKNOWN}) is None


def test_unknown_parent_is_undetermined():
    metadata = {"layer": "Manual", "pattern": "physical-document", "manualConfig": UNKNOWN}
    assert evaluate_condition(MANUAL_STORAGE_CONDITION, metadata) is None


def test_false_wins_over_unknown_in_all():
    metadata = {"layer": "Backend", "pattern": UNKNOWN}
    assert evaluate_condition(MANUAL_STORAGE_CONDITION, metadata) is False


def test_true_wins_over_unknown_in_any():
    condition = {"any": [{"field": "a", "op": "eq", "value": 1}, {"field": "b", "op": "eq", "value": 2}]}
    assert evaluate_condition(condition, {"a": 1, "b": UNKNOWN}) is True
    assert evaluate_condition(condition, {"a": 5, "b": UNKNOWN}) is None


def test_unknown_threshold_is_undetermined():
    condition = {"field": "t", "op": "not_ascending", "value": ["critical", "warning"]}
    assert evaluate_condition(condition, {"t": {"critical": UNKNOWN, "warning": 2}}) is None


# --- validate_condition ---

def test_validate_valid_condition():
    errors = validate_condition(MANUAL_STORAGE_CONDITION)
    assert errors == []


def test_validate_missing_field_key():
    condition = {"op": "eq", "value": True}
    errors = validate_condition(condition)
    assert any("missing required key 'field'" in e for e in errors)


def test_validate_missing_op_key():
    condition = {"field": "x", "value": True}
    errors = validate_condition(condition)
    assert any("missing required key 'op'" in e for e in errors)


def test_validate_missing_value_for_binary_op():
    errors = validate_condition({"field": "x", "op": "eq"})
    assert any("missing required key 'value'" in e for e in errors)


def test_validate_unary_op_needs_no_value():
    assert validate_condition({"field": "x", "op": "missing"}) == []


def test_validate_unknown_operator():
    condition = {"field": "x", "op": "regex", "value": ".*"}
    errors = validate_condition(condition)
    assert any("unknown operator" in e for e in errors)


def test_validate_in_with_non_list_value():
    condition = {"field": "x", "op": "in", "value": "not-a-list"}
    errors = validate_condition(condition)
    assert any("requires a list value" in e for e in errors)


def test_validate_bad_regex():
    errors = validate_condition({"field": "x", "op": "not_matches", "value": "("})
    assert any("invalid regular expression" in e for e in errors)


def test_validate_nested_error():
    condition = {"all": [{"any": [{"field": "x", "op": "bad", "value": 1}]}]}
    errors = validate_condition(condition)
    assert any("unknown operator" in e for e in errors)
    assert any("all[0].any[0]" in e for e in errors)
