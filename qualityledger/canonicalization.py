"""
Canonical JSON Encoding for proof bindings.

An input proof signs a small JSON document naming the ciphertext handle,
the submitting participant and the ledger instance. Client and ledger must
produce byte-identical encodings of that document, so every structure that
is signed or digested goes through `canonicalize`.

Rules:
- Object keys sorted lexicographically (code point order)
- Compact separators, UTF-8, no BOM
- Integers, strings, booleans, null, arrays, objects only
- Floats are rejected: the ledger domain is unsigned integers
"""

import json
from enum import Enum
from typing import Any, Dict, List, Union


def canonicalize(obj: Any) -> bytes:
    """
    Encode an object as canonical JSON bytes.

    Raises:
        ValueError: if the object contains a type with no canonical form
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def _canonicalize_value(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, Enum):
        return _canonicalize_value(value.value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValueError("Floats have no canonical form in ledger bindings")
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, dict):
        return _canonicalize_object(value)
    if isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Dict[Any, Any]) -> Dict[str, Any]:
    for key in obj:
        if not isinstance(key, str):
            raise ValueError(f"Object keys must be strings, got {type(key)}")
    return {k: _canonicalize_value(obj[k]) for k in sorted(obj.keys())}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    return [_canonicalize_value(item) for item in arr]
