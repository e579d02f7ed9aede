"""
Config Value Binding.

Converts config targets to plain documents for encoding, and writes decoded
documents back onto the targets in place.
"""

import dataclasses
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any, get_origin


def to_document(value: Any) -> Any:
    """
    Convert a config target into a plain document.

    Dataclass instances become dicts, mappings and sequences are converted
    recursively, and other objects contribute their public attributes.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            field.name: to_document(getattr(value, field.name))
            for field in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        return {str(k): to_document(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_document(v) for v in value]
    if isinstance(value, str | int | float | bool) or value is None:
        return value
    if hasattr(value, "__dict__"):
        return {
            k: to_document(v) for k, v in vars(value).items() if not k.startswith("_")
        }
    return value


def apply(target: Any, document: Any) -> None:
    """
    Write a decoded document onto a config target in place.

    Only the entries present in the document are overwritten; keys without a
    matching field are ignored. Nested dataclasses and dicts are updated
    recursively instead of being replaced.

    Args:
        target: Dataclass instance, dict, list or plain object to update
        document: Decoded document

    Raises:
        TypeError: If the document's shape does not fit the target
    """
    if isinstance(target, MutableSequence):
        if not isinstance(document, list):
            raise TypeError(f"expected a list, got {type(document).__name__}")
        target[:] = document
        return

    if not isinstance(document, Mapping):
        raise TypeError(f"expected a table, got {type(document).__name__}")

    if isinstance(target, MutableMapping):
        for key, value in document.items():
            current = target.get(key)
            _check(key, current, value)
            if _is_nested(current):
                apply(current, value)
            else:
                target[key] = value
        return

    if dataclasses.is_dataclass(target) and not isinstance(target, type):
        declared = {field.name: field.type for field in dataclasses.fields(target)}
    elif hasattr(target, "__dict__"):
        declared = {k: None for k in vars(target) if not k.startswith("_")}
    else:
        raise TypeError(f"cannot decode into {type(target).__name__}")

    for key, value in document.items():
        if key not in declared:
            continue
        current = getattr(target, key)
        _check(key, current, value, declared[key])
        if _is_nested(current):
            apply(current, value)
        else:
            setattr(target, key, value)


def _check(key: Any, current: Any, value: Any, declared: Any = None) -> None:
    # Values may only replace fields of the same shape.
    if _is_nested(current):
        if not isinstance(value, Mapping):
            raise TypeError(
                f"field '{key}' expects a table, got {type(value).__name__}"
            )
        return
    if isinstance(current, list) and not isinstance(value, list):
        raise TypeError(f"field '{key}' expects a list, got {type(value).__name__}")

    expected = get_origin(declared) or declared
    if not isinstance(expected, type) or value is None:
        return
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return
    if expected is int and isinstance(value, bool):
        raise TypeError(f"field '{key}' expects int, got bool")
    if not isinstance(value, expected):
        raise TypeError(
            f"field '{key}' expects {expected.__name__}, got {type(value).__name__}"
        )


def _is_nested(value: Any) -> bool:
    if isinstance(value, MutableMapping):
        return True
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return True
    return False
