"""Helpers for masking sensitive data before it is logged or echoed back.

Only key names decide whether a value is sensitive. A non-sensitive key whose
value happens to look like a secret is left alone; callers that need
value-aware masking pass ``mask_function``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Final

DEFAULT_MASK: Final[str] = "[REDACTED]"
DEFAULT_MAX_DEPTH: Final[int] = 10

SENSITIVE_FIELDS: Final[tuple[str, ...]] = (
    "password",
    "passwordConfirmation",
    "currentPassword",
    "newPassword",
    "passwd",
    "token",
    "refreshToken",
    "accessToken",
    "apiKey",
    "api_key",
    "secret",
    "privateKey",
    "private_key",
    "authorization",
    "credentials",
    "auth",
    "ssn",
    "socialSecurity",
    "creditCard",
    "credit_card",
    "cardNumber",
    "card_number",
    "cvv",
    "pin",
    "email",
    "phone",
)

MaskFunction = Callable[[Any, str], Any]


def _lowered(fields: Iterable[str]) -> tuple[str, ...]:
    return tuple(f.lower() for f in fields)


_DEFAULT_LOWERED: Final[tuple[str, ...]] = _lowered(SENSITIVE_FIELDS)


def _fields_for(extra: Iterable[str] | None) -> tuple[str, ...]:
    if not extra:
        return _DEFAULT_LOWERED
    return _DEFAULT_LOWERED + _lowered(extra)


def _contains_any(text: str, lowered_fields: tuple[str, ...]) -> bool:
    lower = text.lower()
    return any(field in lower for field in lowered_fields)


def is_sensitive_field(key: object, sensitive_fields: Iterable[str] = SENSITIVE_FIELDS) -> bool:
    """Return True if ``key`` contains any sensitive name (case-insensitive)."""
    return _contains_any(str(key), _lowered(sensitive_fields))


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class _Sanitizer:
    def __init__(
        self,
        lowered_fields: tuple[str, ...],
        mask: str,
        max_depth: int,
        mask_function: MaskFunction | None,
    ) -> None:
        self.fields = lowered_fields
        self.mask = mask
        self.max_depth = max_depth
        self.mask_function = mask_function

    def run(self, value: Any, depth: int) -> Any:
        if depth > self.max_depth:
            return value
        if isinstance(value, Mapping):
            return self._record(value, depth)
        if _is_array(value):
            items = [self.run(item, depth + 1) for item in value]
            return tuple(items) if isinstance(value, tuple) else items
        return value

    def _record(self, record: Mapping[Any, Any], depth: int) -> dict[Any, Any]:
        out: dict[Any, Any] = {}
        for key, value in record.items():
            if _contains_any(str(key), self.fields):
                out[key] = self.masked(value, str(key), depth)
            elif isinstance(value, Mapping) or _is_array(value):
                out[key] = self.run(value, depth + 1)
            else:
                out[key] = value
        return out

    def masked(self, value: Any, key: str, depth: int) -> Any:
        if self.mask_function is not None:
            return self.mask_function(value, key)
        if _is_array(value):
            return [self.mask for _ in value]
        if isinstance(value, Mapping):
            return self._same_shape(value, depth)
        return self.mask

    def _same_shape(self, record: Mapping[Any, Any], depth: int) -> dict[Any, Any]:
        # keeps keys so consumers relying on structure still work
        out: dict[Any, Any] = {}
        for key, value in record.items():
            if isinstance(value, Mapping) and depth < self.max_depth:
                out[key] = self._same_shape(value, depth + 1)
            elif _is_array(value):
                out[key] = [self.mask for _ in value]
            else:
                out[key] = self.mask
        return out


def sanitize(
    value: Any,
    *,
    extra_sensitive_fields: Iterable[str] | None = None,
    mask: str = DEFAULT_MASK,
    max_depth: int = DEFAULT_MAX_DEPTH,
    mask_function: MaskFunction | None = None,
) -> Any:
    """Return a copy of ``value`` with sensitive fields masked.

    - Mappings are copied key by key; sensitive keys are masked, others recurse
    - Lists/tuples under a sensitive key become an all-mask list of equal length
    - Nested objects under a sensitive key keep their keys with masked leaves
    - Beyond ``max_depth`` the subtree is returned unmodified
    - The input is never mutated
    """
    sanitizer = _Sanitizer(_fields_for(extra_sensitive_fields), mask, max_depth, mask_function)
    return sanitizer.run(value, 0)


def sanitize_shallow(
    value: Any,
    *,
    extra_sensitive_fields: Iterable[str] | None = None,
    mask: str = DEFAULT_MASK,
    mask_function: MaskFunction | None = None,
) -> Any:
    """Mask only top-level keys; nested objects under sensitive keys are masked wholesale."""
    fields = _fields_for(extra_sensitive_fields)

    if _is_array(value):
        out_items = []
        for item in value:
            if isinstance(item, str) and _contains_any(item, fields):
                out_items.append(mask_function(item, "array-item") if mask_function else mask)
            else:
                out_items.append(item)
        return out_items

    if not isinstance(value, Mapping):
        return value

    out: dict[Any, Any] = dict(value)
    for key, item in value.items():
        if not _contains_any(str(key), fields):
            continue
        if mask_function is not None:
            out[key] = mask_function(item, str(key))
        elif _is_array(item):
            out[key] = [mask for _ in item]
        else:
            out[key] = mask
    return out


def pick_safe_fields(value: Any, safe_fields: Iterable[str]) -> dict[str, Any]:
    """Allow-list variant: copy only ``safe_fields`` that are present."""
    if not isinstance(value, Mapping):
        return {}
    return {field: value[field] for field in safe_fields if field in value}
