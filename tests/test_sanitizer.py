"""
Value sanitizer
"""
import re
from datetime import datetime, timezone
from enum import Enum

import pytest

from annotator.dom import DomElement
from annotator.events import DomEvent
from annotator.remote import (
    RemoteError,
    RemoteFunction,
    RemoteObject,
    RemoteObservable,
    RemotePromise,
    RemoteSubject,
    RemoteSymbol,
    TruncatedSequence,
)
from annotator.sanitizer import (
    ACCESS_DENIED,
    BASE64_IMAGE,
    MAX_DEPTH_SENTINEL,
    MAX_SAFE_INTEGER,
    ValueKind,
    ValueSanitizer,
    classify,
    format_value,
    sanitize,
)


def depth_of(value) -> int:
    if isinstance(value, dict):
        return 1 + max((depth_of(v) for v in value.values()), default=0)
    if isinstance(value, list):
        return 1 + max((depth_of(v) for v in value), default=0)
    return 0


def nested(levels: int):
    value = {"leaf": 1}
    for i in range(levels):
        value = {f"level{i}": value}
    return value


class Color(Enum):
    RED = 1


class Exploding:
    def __init__(self):
        self.ok = 1

    @property
    def boom(self):
        raise RuntimeError("getter failed")


class Thing:
    def __init__(self):
        self.name = "thing"
        self._private = "x"


class FlakySequence:
    def __len__(self):
        return 3

    def __getitem__(self, index):
        raise RuntimeError("getter threw")


class Unprintable:
    __slots__ = ()

    def __str__(self):
        raise RuntimeError("str threw")


class BadLength(list):
    def __len__(self):
        raise RuntimeError("len threw")


class TestPrimitives:
    @pytest.mark.parametrize("value", [None, True, False, 0, -3, 2.5, "hello", ""])
    def test_passthrough(self, value):
        assert sanitize(value) == value

    def test_unsafe_integer_becomes_text(self):
        assert sanitize(MAX_SAFE_INTEGER) == MAX_SAFE_INTEGER
        assert sanitize(MAX_SAFE_INTEGER + 1) == str(MAX_SAFE_INTEGER + 1)

    def test_long_string_descriptor(self):
        result = sanitize("x" * 2000)
        assert result == f'[String: 2000 chars, truncated: "{"x" * 100}..."]'

    def test_string_at_limit_is_kept(self):
        assert sanitize("y" * 1024) == "y" * 1024

    def test_embedded_image(self):
        assert sanitize("data:image/png;base64,iVBORw0KGgo=") == BASE64_IMAGE

    def test_bytes(self):
        assert sanitize(b"abc") == "[Bytes: 3 bytes]"


class TestTaggedKinds:
    def test_function_signature(self):
        def add_item(item, quantity=1):
            return item

        assert sanitize(add_item) == "[Function: add_item(item, quantity=1)]"

    def test_remote_function(self):
        fn = RemoteFunction("onClick", "onClick(event, item) { this.select(item); }")
        assert sanitize(fn) == "[Function: onClick(event, item)]"

    def test_remote_arrow_function(self):
        assert sanitize(RemoteFunction("", "x => x * 2")) == "[Function: anonymous(x)]"
        assert sanitize(RemoteFunction("f", "({a, b}) => a")) == "[Function: f()]"

    def test_streams_sinks_and_pending(self):
        assert sanitize(RemoteSubject()) == "[Subject]"
        assert sanitize(RemoteObservable()) == "[Observable]"
        assert sanitize(RemotePromise()) == "[Promise]"

    def test_classify_by_capability(self):
        class Stream:
            def subscribe(self, fn):
                return fn

        class Sink(Stream):
            def emit(self, value):
                return value

        assert classify(Stream()) is ValueKind.STREAM
        assert classify(Sink()) is ValueKind.SINK
        assert classify({"subscribe": 1}) is None

    def test_date_and_pattern(self):
        stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert sanitize(stamp) == "2024-01-02T03:04:05+00:00"
        assert sanitize(re.compile(r"^a+$", re.IGNORECASE)) == "/^a+$/i"

    def test_errors(self):
        assert sanitize(ValueError("bad input")) == "[Error: bad input]"
        assert sanitize(RemoteError("not found", "HttpError")) == "[Error: not found]"

    def test_element_and_event(self):
        assert sanitize(DomElement("button")) == "[HTMLElement: <button>]"
        assert sanitize(DomEvent(etype="click")) == "[Event: click]"

    def test_symbols(self):
        assert sanitize(RemoteSymbol("token")) == "[Symbol: token]"
        assert sanitize(Color.RED) == "[Symbol: Color.RED]"


class TestContainers:
    def test_array_of_25_is_truncated(self):
        result = sanitize(list(range(25)))
        assert result["type"] == "TruncatedArray"
        assert result["length"] == 25
        assert result["sample"] == [0, 1, 2, 3, 4]

    def test_remote_truncated_sequence_keeps_real_length(self):
        result = sanitize(TruncatedSequence(300, [{"id": i} for i in range(5)]))
        assert result["length"] == 300
        assert len(result["sample"]) == 5

    def test_short_array_is_kept(self):
        assert sanitize([1, "a", None]) == [1, "a", None]

    def test_internal_keys_are_skipped(self):
        assert sanitize({"name": "x", "_cache": 1, "ɵcmp": 2, "ngZone": 3}) == {"name": "x"}

    def test_empty_object_becomes_type_tag(self):
        assert sanitize({}) == "[Object: dict]"
        assert sanitize(RemoteObject("Product", {})) == "[Object: Product]"

    def test_plain_objects(self):
        assert sanitize(Thing()) == {"name": "thing"}

    def test_getter_failure_is_localized(self):
        obj = RemoteObject("User", {"name": "ann"}, denied=["token"])
        assert sanitize(obj) == {"name": "ann", "token": ACCESS_DENIED}

    def test_property_failure_on_python_object(self):
        value = Exploding()
        value.__dict__["boom"] = None  # make the property show up in vars()
        assert sanitize(value) == {"ok": 1, "boom": ACCESS_DENIED}

    def test_failing_element_access_is_localized(self):
        assert sanitize([FlakySequence()]) == [[ACCESS_DENIED] * 3]

    def test_failing_str_becomes_type_tag(self):
        assert sanitize({"x": Unprintable()}) == {"x": "[Object: Unprintable]"}

    def test_failing_len_becomes_type_tag(self):
        assert sanitize({"items": BadLength([1, 2])}) == {"items": "[Object: BadLength]"}

    def test_unorderable_set_members(self):
        class NoRepr:
            def __repr__(self):
                raise RuntimeError("repr threw")

        assert sanitize({NoRepr(), NoRepr()}) == "[Object: set]"

    def test_depth_is_bounded(self):
        result = sanitize(nested(10))
        flat = repr(result)
        assert MAX_DEPTH_SENTINEL in flat
        assert depth_of(result) <= 4

    def test_custom_depth(self):
        shallow = ValueSanitizer(max_depth=1)
        assert shallow.sanitize({"a": {"b": {"c": 1}}}) == {"a": {"b": MAX_DEPTH_SENTINEL}}

    def test_cycles_terminate(self):
        loop = {"name": "root"}
        loop["self"] = loop
        result = sanitize(loop)
        assert result["name"] == "root"
        assert MAX_DEPTH_SENTINEL in repr(result)


class TestIdempotence:
    @pytest.mark.parametrize("value", [
        list(range(25)),
        [[i] * 30 for i in range(25)],
        nested(8),
        {"text": "z" * 5000, "img": "data:image/gif;base64,R0lGOD", "big": 2 ** 60},
        {"when": datetime(2020, 5, 1), "fn": len, "kind": RemoteSubject()},
        RemoteObject("User", {"name": "ann", "roles": list(range(40))}, denied=["token"]),
        Thing(),
        {},
    ])
    def test_sanitize_twice_is_stable(self, value):
        once = sanitize(value)
        assert sanitize(once) == once


class TestFormatValue:
    def test_scalars(self):
        assert format_value(None) == "null"
        assert format_value(True) == "true"
        assert format_value("hi") == '"hi"'
        assert format_value(3) == "3"

    def test_containers_use_json(self):
        assert format_value({"a": [1, 2]}) == '{"a":[1,2]}'
