# annotator/events.py
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EventType = Literal[
    "pointermove", "click", "dblclick", "keydown", "breadcrumb", "editor", "toolbar"
]


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DomEvent(BaseModel):
    """An input event forwarded from the page by the injected script."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    t: str = Field(default_factory=_utc_stamp)
    etype: str
    url: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    default_prevented: bool = False
    propagation_stopped: bool = False

    def suppress(self):
        # the page script already did this synchronously; keep the record in step
        self.default_prevented = True
        self.propagation_stopped = True


class PointerInput(DomEvent):
    etype: Literal["pointermove", "click", "dblclick"] = "pointermove"
    x: float
    y: float
    button: Literal["left", "middle", "right"] = "left"
    target: Any = Field(default=None, repr=False)
    document: Any = Field(default=None, repr=False)


class KeyInput(DomEvent):
    etype: Literal["keydown"] = "keydown"
    key: str
    code: str = ""
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta_key: bool = False

    @property
    def is_toggle(self) -> bool:
        return self.ctrl and self.shift and self.key.lower() == "i"

    @property
    def is_escape(self) -> bool:
        return self.key == "Escape"


class BreadcrumbInput(DomEvent):
    etype: Literal["breadcrumb"] = "breadcrumb"
    index: int
    double: bool = False


class EditorInput(DomEvent):
    etype: Literal["editor"] = "editor"
    action: Literal["save", "delete", "cancel"]
    index: int
    intent: str = ""


class MarkerListInput(DomEvent):
    """Row action in the markers panel."""

    etype: Literal["marker"] = "marker"
    action: Literal["edit", "delete", "scroll"]
    index: int


class ToolbarInput(DomEvent):
    etype: Literal["toolbar"] = "toolbar"
    action: Literal["record", "copy", "copy_node", "markers", "clear", "detail", "color", "theme"]
