import copy

from users_api.utils.sensitive_data import (
    DEFAULT_MASK,
    is_sensitive_field,
    pick_safe_fields,
    sanitize,
    sanitize_shallow,
)


def test_masks_nested_sensitive_keys():
    value = {"email": "a@b.com", "nested": {"password": "x"}}
    assert sanitize(value) == {"email": DEFAULT_MASK, "nested": {"password": DEFAULT_MASK}}


def test_input_is_not_mutated():
    value = {"user": {"password": "secret", "tags": ["a"]}}
    before = copy.deepcopy(value)
    sanitize(value)
    assert value == before


def test_idempotent():
    value = {"token": "t", "items": [{"apiKey": "k", "n": 1}], "meta": {"cvv": ["1", "2"]}}
    once = sanitize(value)
    assert sanitize(once) == once


def test_key_match_is_case_insensitive_substring():
    out = sanitize({"Authorization": "Bearer x", "X-Refresh-Token-Id": "y", "name": "Ann"})
    assert out == {"Authorization": DEFAULT_MASK, "X-Refresh-Token-Id": DEFAULT_MASK, "name": "Ann"}


def test_values_are_not_inspected():
    assert sanitize({"note": "my password is hunter2"}) == {"note": "my password is hunter2"}


def test_array_under_sensitive_key_keeps_length():
    assert sanitize({"tokens": ["a", "b", "c"]}) == {"tokens": [DEFAULT_MASK] * 3}


def test_object_under_sensitive_key_keeps_shape():
    out = sanitize({"credentials": {"user": "u", "inner": {"k": "v"}, "ids": [1, 2]}})
    assert out == {
        "credentials": {
            "user": DEFAULT_MASK,
            "inner": {"k": DEFAULT_MASK},
            "ids": [DEFAULT_MASK, DEFAULT_MASK],
        }
    }


def test_lists_of_records_and_tuples():
    out = sanitize([{"password": "x"}, {"name": "n"}])
    assert out == [{"password": DEFAULT_MASK}, {"name": "n"}]
    assert sanitize(({"secret": 1},)) == ({"secret": DEFAULT_MASK},)


def test_depth_bound_leaves_deeper_levels_untouched():
    within = {"a": {"a": {"password": "x"}}}
    beyond = {"a": {"a": {"a": {"password": "x"}}}}
    assert sanitize(within, max_depth=2) == {"a": {"a": {"password": DEFAULT_MASK}}}
    assert sanitize(beyond, max_depth=2) == beyond


def test_very_deep_input_terminates():
    deep: dict = {"password": "x"}
    for _ in range(5000):
        deep = {"next": deep}
    out = sanitize(deep)
    assert isinstance(out, dict)


def test_extra_fields_mask_and_mask_function():
    assert sanitize({"sessionId": "s"}, extra_sensitive_fields=["sessionid"]) == {
        "sessionId": DEFAULT_MASK
    }
    assert sanitize({"pin": "1234"}, mask="***") == {"pin": "***"}
    assert sanitize({"phone": "555"}, mask_function=lambda v, k: f"<{k}:{len(v)}>") == {
        "phone": "<phone:3>"
    }


def test_non_container_values_pass_through():
    assert sanitize(42) == 42
    assert sanitize(None) is None
    assert sanitize("password") == "password"


def test_shallow_only_masks_top_level():
    value = {"password": "x", "nested": {"password": "y"}, "tokens": ["a", "b"]}
    out = sanitize_shallow(value)
    assert out == {
        "password": DEFAULT_MASK,
        "nested": {"password": "y"},
        "tokens": [DEFAULT_MASK, DEFAULT_MASK],
    }


def test_shallow_masks_sensitive_looking_strings_in_arrays():
    assert sanitize_shallow(["my password is x", "hello", 3]) == [DEFAULT_MASK, "hello", 3]


def test_pick_safe_fields():
    assert pick_safe_fields({"id": 1, "password": "x"}, ["id", "name"]) == {"id": 1}
    assert pick_safe_fields("nope", ["id"]) == {}


def test_is_sensitive_field():
    assert is_sensitive_field("X-Auth-Token")
    assert not is_sensitive_field("username")
    assert is_sensitive_field("sessionId", ["session"])
