# annotator/snapshot.py
"""
Decodes the lineage snapshots posted by the page script.

A snapshot carries the hovered element and its ancestors (root first), each
with a summary of its children, plus a description of every Angular component
or directive touching that chain. Element keys are stable in the page, so the
same element decodes to equal handles across snapshots.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .dom import DomElement, Document
from .events import DomEvent
from .introspection import AngularIntrospection
from .models import Rect, Viewport
from .remote import (
    RemoteError,
    RemoteFunction,
    RemoteObject,
    RemoteObservable,
    RemotePromise,
    RemoteSubject,
    RemoteSymbol,
    TruncatedSequence,
)
from .sanitizer import ACCESS_DENIED, MAX_DEPTH_SENTINEL

logger = logging.getLogger(__name__)

CIRCULAR = "[Circular]"

_JS_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


def _regexp(source: str, flags: str) -> Any:
    py_flags = 0
    for letter in flags or "":
        py_flags |= _JS_FLAGS.get(letter, 0)
    try:
        return re.compile(source, py_flags)
    except re.error:
        # JS-only syntax: keep the literal text
        return f"/{source}/{flags or ''}"


def _date(iso: Optional[str]) -> Any:
    if not iso:
        return "Invalid Date"
    return datetime.fromisoformat(iso.replace("Z", "+00:00"))


def decode_value(value: Any) -> Any:
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if not isinstance(value, dict):
        return value
    tag = value.get("$t")
    if tag is None:
        return {k: decode_value(v) for k, v in value.items()}
    if tag == "undefined":
        return None
    if tag == "function":
        return RemoteFunction(value.get("name", ""), value.get("source", ""))
    if tag == "symbol":
        return RemoteSymbol(value.get("description", ""))
    if tag == "bigint":
        return int(value["value"])
    if tag == "array":
        return TruncatedSequence(value["length"], [decode_value(v) for v in value.get("items", [])])
    if tag == "subject":
        return RemoteSubject()
    if tag == "observable":
        return RemoteObservable()
    if tag == "promise":
        return RemotePromise()
    if tag == "date":
        return _date(value.get("iso"))
    if tag == "regexp":
        return _regexp(value.get("source", ""), value.get("flags", ""))
    if tag == "error":
        return RemoteError(value.get("message", ""), value.get("name", "Error"))
    if tag == "element":
        return DomElement(value.get("tag", "unknown"))
    if tag == "event":
        return DomEvent(etype=value.get("type", "unknown"))
    if tag == "object":
        entries = {k: decode_value(v) for k, v in (value.get("entries") or {}).items()}
        return RemoteObject(value.get("name", "Object"), entries, value.get("denied") or ())
    if tag == "deep":
        return MAX_DEPTH_SENTINEL
    if tag == "cycle":
        return CIRCULAR
    if tag == "denied":
        return ACCESS_DENIED
    logger.debug("Unknown value tag %r", tag)
    return str(value)


def _rect(desc: Mapping[str, Any]) -> Optional[Rect]:
    r = desc.get("rect")
    if not r:
        return None
    return Rect(x=r.get("x", 0), y=r.get("y", 0), width=r.get("width", 0), height=r.get("height", 0))


def _element(desc: Mapping[str, Any]) -> DomElement:
    meta = {}
    if desc.get("ng") is not None:
        meta["ng"] = desc["ng"]
    if desc.get("childCount") is not None:
        # children beyond the shipped summaries still count
        meta["child_count"] = desc["childCount"]
    return DomElement(
        tag_name=desc.get("tag", "unknown"),
        id=desc.get("id", ""),
        classes=desc.get("classes") or (),
        attributes=desc.get("attrs"),
        text_content=desc.get("text", ""),
        rect=_rect(desc),
        styles=desc.get("styles"),
        key=desc.get("key"),
        meta=meta,
    )


class SnapshotDecoder:
    def __init__(self, introspection: AngularIntrospection):
        self.introspection = introspection

    def decode(self, payload: Mapping[str, Any]) -> Optional[Document]:
        """Build the partial element tree; None when the payload has no target."""
        if "ngAvailable" not in payload:
            # chrome events carry no page state
            return None
        components = {
            int(cid): {**desc, "fields": {k: decode_value(v) for k, v in (desc.get("fields") or {}).items()}}
            for cid, desc in (payload.get("components") or {}).items()
        }
        self.introspection.absorb(bool(payload.get("ngAvailable")), components)

        chain: List[Mapping[str, Any]] = payload.get("chain") or []
        if not chain:
            return None
        elements = [_element(desc) for desc in chain]
        for parent_desc, parent, child in zip(chain, elements, elements[1:]):
            self._attach(parent_desc, parent, child)
        # the deepest chain element still gets its children for sibling lookups below it
        self._attach(chain[-1], elements[-1], None)

        viewport = payload.get("viewport")
        return Document(
            elements[0],
            url=payload.get("url"),
            viewport=Viewport(**viewport) if viewport else None,
            user_agent=payload.get("userAgent"),
        )

    def _attach(self, parent_desc: Mapping[str, Any], parent: DomElement, child: Optional[DomElement]):
        placed = False
        for summary in parent_desc.get("children") or ():
            if child is not None and summary.get("key") == child.key:
                parent.append(child)
                placed = True
            else:
                parent.append(_element(summary))
        if child is not None and not placed:
            parent.append(child)

    @staticmethod
    def target_of(document: Optional[Document], payload: Mapping[str, Any]) -> Optional[DomElement]:
        if document is None or payload.get("targetKey") is None:
            return None
        return document.find(payload["targetKey"])
