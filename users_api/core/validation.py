"""Input validation pipe and helpers that flatten validation errors.

Payloads are validated against pydantic models (the "declared shape"). All
failing fields are collected into ``{field: [messages]}`` with dot-joined paths
for nested values, then raised as a single :class:`ValidationError`.
"""

from __future__ import annotations

import types
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any, Final, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from users_api.core.exceptions import ValidationError

ROOT_FIELD: Final[str] = "_root"

NATIVE_TYPES: Final[tuple[type, ...]] = (
    str,
    bytes,
    bool,
    int,
    float,
    Decimal,
    list,
    tuple,
    set,
    dict,
    object,
    date,
    datetime,
    UUID,
)

# Leading ``loc`` segments FastAPI adds to say where a value came from.
_LOC_SOURCES: Final = frozenset({"body", "query", "path", "header", "cookie"})

ExtraPolicy = Literal["allow", "ignore", "forbid"]


def _member(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def flatten_validation_entries(
    entries: Iterable[Any], parent: str = ""
) -> dict[str, list[str]]:
    """Flatten ``[{property, constraints, children}]`` entries.

    Constraint values become the message list of the property; children
    contribute ``parent.child`` paths.
    """
    out: dict[str, list[str]] = {}
    for entry in entries:
        prop = str(_member(entry, "property") or "")
        path = f"{parent}.{prop}" if parent else prop
        constraints = _member(entry, "constraints")
        children = _member(entry, "children") or ()
        if isinstance(constraints, Mapping):
            out[path or ROOT_FIELD] = [str(m) for m in constraints.values()]
        elif not children:
            out[path or ROOT_FIELD] = []
        if children:
            out.update(flatten_validation_entries(children, path))
    return out


def flatten_pydantic_errors(
    errors: Iterable[Mapping[str, Any]], *, strip_source: bool = False
) -> dict[str, list[str]]:
    """Group pydantic error dicts by dot-joined ``loc``."""
    out: dict[str, list[str]] = {}
    for err in errors:
        loc = list(err.get("loc") or ())
        if strip_source and len(loc) > 1 and loc[0] in _LOC_SOURCES:
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or ROOT_FIELD
        if err.get("type") == "extra_forbidden":
            message = f"property {field} should not exist"
        else:
            message = str(err.get("msg") or "Invalid value")
        out.setdefault(field, []).append(message)
    return out


@lru_cache(maxsize=256)
def _shape_with_extra(model: type[BaseModel], extra: ExtraPolicy) -> type[BaseModel]:
    if model.model_config.get("extra") == extra:
        return model

    def _body(ns: dict[str, Any]) -> None:
        ns["__module__"] = model.__module__
        ns["model_config"] = ConfigDict(extra=extra)

    return types.new_class(model.__name__, (model,), {}, _body)


@dataclass(frozen=True)
class ValidationOptions:
    transform: bool = True
    whitelist: bool = True
    forbid_non_whitelisted: bool = False
    forbid_unknown_values: bool = False


class ValidationPipe:
    """Validate and coerce raw payloads into their declared model.

    - ``transform``: allow type coercion (otherwise validate strictly)
    - ``whitelist``: drop fields the model does not declare
    - ``forbid_non_whitelisted``: report undeclared fields instead of dropping them
    - ``forbid_unknown_values``: reject targets that declare no validatable shape
    """

    def __init__(self, options: ValidationOptions | None = None, **flags: bool) -> None:
        self.options = options or ValidationOptions(**flags)

    def _extra_policy(self) -> ExtraPolicy:
        if not self.options.whitelist:
            return "allow"
        return "forbid" if self.options.forbid_non_whitelisted else "ignore"

    def transform(self, value: Any, target: Any = None) -> Any:
        if target is None or _is_native(target):
            return value
        # scalar route/query params pass through untouched
        if not isinstance(value, Mapping):
            return value
        if not (isinstance(target, type) and issubclass(target, BaseModel)):
            if self.options.forbid_unknown_values:
                raise ValidationError(
                    {ROOT_FIELD: ["an unknown value was passed to the validate function"]}
                )
            return value

        try:
            shape = _shape_with_extra(target, self._extra_policy())
            return shape.model_validate(value, strict=not self.options.transform)
        except PydanticValidationError as exc:
            errors = flatten_pydantic_errors(exc.errors())
        except ValidationError:
            raise
        except Exception as exc:
            cause = str(exc) or type(exc).__name__
            raise ValidationError(
                {ROOT_FIELD: [f"Validation failed: {cause}"]},
                message=f"Validation failed: {cause}",
                context={"cause": type(exc).__name__, "target": target.__name__},
            ) from exc

        raise ValidationError(errors or {ROOT_FIELD: ["Invalid value"]})


def _is_native(target: Any) -> bool:
    return any(target is native for native in NATIVE_TYPES)
