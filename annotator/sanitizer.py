# annotator/sanitizer.py
"""
Turns arbitrary runtime values into JSON-safe, size-bounded data.

Rules, in priority order:
  1. None, booleans and numbers pass through (unsafe big integers -> text)
  2. strings: embedded images -> [Base64Image], > 1024 chars -> descriptor
  3. callables -> [Function: name(args)]
  4. symbols / bytes -> descriptive text
  5. tagged kinds (streams, sinks, pending computations, dates, patterns,
     errors, element handles, UI events) -> fixed descriptive text
  6. containers deeper than max depth -> [MaxDepthReached]
  7. sequences > 20 items -> TruncatedArray descriptor, else elementwise
  8. mappings/objects key by key, internal keys skipped

The output of ``sanitize`` sanitizes to itself.
"""
import enum
import inspect
import re
from collections.abc import Mapping
from datetime import date, datetime, time as dtime
from enum import Enum
from typing import Any, Dict, Iterator, Optional

import orjson

from .dom import DomElement
from .events import DomEvent
from .remote import RemoteObject, RemoteSymbol

MAX_STRING_LENGTH = 1024
STRING_PREVIEW_LENGTH = 100
MAX_ARRAY_LENGTH = 20
ARRAY_SAMPLE_SIZE = 5
MAX_DEPTH = 3
MAX_SAFE_INTEGER = 2 ** 53 - 1
INTERNAL_PREFIXES = ("_", "ɵ", "ng")

MAX_DEPTH_SENTINEL = "[MaxDepthReached]"
ACCESS_DENIED = "[AccessDenied]"
BASE64_IMAGE = "[Base64Image]"

_SIGNATURE_ARGS = re.compile(r"\(([^)]*)\)")
_PATTERN_FLAGS = ((re.IGNORECASE, "i"), (re.MULTILINE, "m"), (re.DOTALL, "s"), (re.VERBOSE, "x"))


class ValueKind(enum.Enum):
    SINK = "sink"
    STREAM = "stream"
    PENDING = "pending"
    DATE = "date"
    PATTERN = "pattern"
    ERROR = "error"
    ELEMENT = "element"
    EVENT = "event"


def _has_callable(value: Any, name: str) -> bool:
    try:
        return callable(getattr(value, name, None))
    except Exception:
        return False


def classify(value: Any) -> Optional[ValueKind]:
    """Duck-typed classification; None for values that are not one of the tagged kinds."""
    if _has_callable(value, "subscribe"):
        if _has_callable(value, "emit"):
            return ValueKind.SINK
        return ValueKind.STREAM
    if inspect.isawaitable(value) or _has_callable(value, "then") or _has_callable(value, "add_done_callback"):
        return ValueKind.PENDING
    if isinstance(value, (datetime, date, dtime)):
        return ValueKind.DATE
    if isinstance(value, re.Pattern):
        return ValueKind.PATTERN
    if isinstance(value, BaseException):
        return ValueKind.ERROR
    if isinstance(value, DomElement):
        return ValueKind.ELEMENT
    if isinstance(value, DomEvent):
        return ValueKind.EVENT
    return None


def describe_kind(kind: ValueKind, value: Any) -> str:
    if kind is ValueKind.SINK:
        return "[Subject]"
    if kind is ValueKind.STREAM:
        return "[Observable]"
    if kind is ValueKind.PENDING:
        return "[Promise]"
    if kind is ValueKind.DATE:
        return value.isoformat()
    if kind is ValueKind.PATTERN:
        flags = "".join(letter for flag, letter in _PATTERN_FLAGS if value.flags & flag)
        return f"/{value.pattern}/{flags}"
    if kind is ValueKind.ERROR:
        return f"[Error: {value}]"
    if kind is ValueKind.ELEMENT:
        return f"[HTMLElement: <{value.tag_name}>]"
    return f"[Event: {value.etype}]"


def function_signature(fn: Any) -> str:
    name = getattr(fn, "__name__", None) or "anonymous"
    try:
        text = str(inspect.signature(fn))
    except (TypeError, ValueError):
        text = ""
    match = _SIGNATURE_ARGS.match(text)
    args = match.group(1) if match else ""
    return f"[Function: {name}({args})]"


def type_name(value: Any) -> str:
    if isinstance(value, RemoteObject):
        return value.constructor_name
    return type(value).__name__


def is_internal(key: str) -> bool:
    return key.startswith(INTERNAL_PREFIXES)


class ValueSanitizer:
    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth

    def sanitize(self, value: Any, depth: int = 0) -> Any:
        try:
            return self._sanitize(value, depth)
        except Exception:
            # a value whose own protocol methods fail is described, never re-raised
            return f"[Object: {type_name(value)}]"

    def _sanitize(self, value: Any, depth: int) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, int) and not isinstance(value, Enum):
            if abs(value) > MAX_SAFE_INTEGER:
                return str(value)
            return value
        if isinstance(value, float):
            return value
        if isinstance(value, str):
            return self._sanitize_string(value)
        if callable(value) and classify(value) is None:
            return function_signature(value)
        if isinstance(value, RemoteSymbol):
            return f"[Symbol: {value.description}]"
        if isinstance(value, Enum):
            return f"[Symbol: {type(value).__name__}.{value.name}]"
        if isinstance(value, (bytes, bytearray, memoryview)):
            return f"[Bytes: {len(value)} bytes]"

        kind = classify(value)
        if kind is not None:
            return describe_kind(kind, value)

        if depth > self.max_depth:
            return MAX_DEPTH_SENTINEL
        if isinstance(value, Mapping):
            return self._sanitize_mapping(value, depth)
        if isinstance(value, (list, tuple, set, frozenset)) or _is_sequence(value):
            return self._sanitize_sequence(value, depth)
        if hasattr(value, "__dict__"):
            return self._sanitize_object(value, depth)
        return str(value)

    def sanitize_record(self, record: Mapping) -> Dict[str, Any]:
        return {
            str(k): self.sanitize(v)
            for k, v in record.items()
            if not is_internal(str(k))
        }

    # ---- helpers ----

    def _sanitize_string(self, value: str) -> str:
        if value.startswith("data:image/"):
            return BASE64_IMAGE
        if len(value) > MAX_STRING_LENGTH:
            return f'[String: {len(value)} chars, truncated: "{value[:STRING_PREVIEW_LENGTH]}..."]'
        return value

    def _sanitize_sequence(self, value: Any, depth: int) -> Any:
        if isinstance(value, (set, frozenset)):
            value = sorted(value, key=repr)
        length = len(value)
        if length > MAX_ARRAY_LENGTH:
            if depth + 1 > self.max_depth:
                return {"type": "TruncatedArray", "length": length, "sample": MAX_DEPTH_SENTINEL}
            # samples sit two levels down: descriptor -> "sample" -> item
            sample = list(self._items(value, ARRAY_SAMPLE_SIZE, depth + 2))
            return {"type": "TruncatedArray", "length": length, "sample": sample}
        return list(self._items(value, length, depth + 1))

    def _items(self, value: Any, count: int, depth: int) -> Iterator[Any]:
        for index in range(count):
            try:
                item = value[index]
            except IndexError:
                # only a prefix of the sequence is present
                return
            except Exception:
                yield ACCESS_DENIED
                continue
            yield self.sanitize(item, depth)

    def _sanitize_mapping(self, value: Mapping, depth: int) -> Any:
        result: Dict[str, Any] = {}
        for key in list(value.keys()):
            name = str(key)
            if is_internal(name):
                continue
            try:
                item = value[key]
            except Exception:
                result[name] = ACCESS_DENIED
                continue
            result[name] = self.sanitize(item, depth + 1)
        if not result:
            return f"[Object: {type_name(value)}]"
        return result

    def _sanitize_object(self, value: Any, depth: int) -> Any:
        result: Dict[str, Any] = {}
        for name in list(vars(value)):
            if is_internal(name):
                continue
            try:
                item = getattr(value, name)
            except Exception:
                result[name] = ACCESS_DENIED
                continue
            result[name] = self.sanitize(item, depth + 1)
        if not result:
            return f"[Object: {type_name(value)}]"
        return result


def _is_sequence(value: Any) -> bool:
    return hasattr(value, "__len__") and hasattr(value, "__getitem__") and not isinstance(value, (str, bytes))


_default = ValueSanitizer()


def sanitize(value: Any, depth: int = 0, max_depth: int = MAX_DEPTH) -> Any:
    if max_depth == MAX_DEPTH:
        return _default.sanitize(value, depth)
    return ValueSanitizer(max_depth).sanitize(value, depth)


def format_value(value: Any) -> str:
    """One-line rendering of a sanitized value for the inspector listing."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, (dict, list)):
        return orjson.dumps(value, option=orjson.OPT_NON_STR_KEYS).decode()
    return str(value)
