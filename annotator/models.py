# annotator/models.py
import time
import uuid
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

MarkerColor = Literal["purple", "blue", "cyan", "green", "yellow", "orange", "red"]

OutputDetail = Literal["compact", "standard", "detailed", "forensic"]

MARKER_COLORS: Dict[str, str] = {
    "purple": "#a855f7",
    "blue": "#3b82f6",
    "cyan": "#06b6d4",
    "green": "#22c55e",
    "yellow": "#eab308",
    "orange": "#f97316",
    "red": "#ef4444",
}

OUTPUT_DETAILS: Tuple[str, ...] = ("compact", "standard", "detailed", "forensic")

# Style properties captured for every resolved node
KEY_COMPUTED_STYLES: Tuple[str, ...] = (
    "display",
    "position",
    "width",
    "height",
    "padding",
    "margin",
    "background-color",
    "color",
    "font-size",
    "font-weight",
    "font-family",
    "border",
    "border-radius",
    "opacity",
    "cursor",
    "z-index",
)


def now_ms() -> int:
    return int(time.time() * 1000)


class Rect(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


class ParentInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: str = Field(alias="displayName")
    selector: str


class ComponentNode(BaseModel):
    """Read-only description of one live element at resolution time."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    uid: str
    display_name: str = Field(alias="displayName")
    selector: str
    dom_path: str = Field(alias="domPath")
    bound_properties: Dict[str, Any] = Field(default_factory=dict, alias="boundProperties")
    emitted_events: List[str] = Field(default_factory=list, alias="emittedEvents")
    public_state: Dict[str, Any] = Field(default_factory=dict, alias="publicState")
    # owned by the host document, never copied or serialized
    element: Any = Field(default=None, exclude=True, repr=False)
    rect: Rect = Field(default_factory=Rect)
    computed_styles: Dict[str, str] = Field(default_factory=dict, alias="computedStyles")
    behaviors: List[str] = Field(default_factory=list)
    parent: Optional[ParentInfo] = None
    is_plain: bool = Field(default=False, alias="isPlain")

    def summary(self) -> Dict[str, Any]:
        """JSON-safe payload (camelCase) for the remote collector."""
        return self.model_dump(by_alias=True, mode="json")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    output_detail: OutputDetail = Field("forensic", alias="outputDetail")
    marker_color: MarkerColor = Field("blue", alias="markerColor")
    clear_on_copy: bool = Field(False, alias="clearOnCopy")
    block_page_interactions: bool = Field(False, alias="blockPageInteractions")
    show_framework_components: bool = Field(True, alias="showFrameworkComponents")
    is_dark_mode: bool = Field(False, alias="isDarkMode")


class MarkerAnnotation(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    target: ComponentNode
    intent: str = ""
    color: MarkerColor = "blue"
    timestamp: int = Field(default_factory=now_ms)


def _session_id() -> str:
    return f"session-{now_ms()}-{uuid.uuid4().hex[:9]}"


class RecordingSession(BaseModel):
    """Ordered markers of one recording run.

    Every mutation returns a new session; the instance itself never changes,
    so holders can detect updates with an identity check.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_session_id)
    markers: Tuple[MarkerAnnotation, ...] = ()
    start_time: int = 0
    end_time: Optional[int] = None
    is_recording: bool = False

    @classmethod
    def begin(cls) -> "RecordingSession":
        return cls(start_time=now_ms(), is_recording=True)

    def stopped(self) -> "RecordingSession":
        return self.model_copy(update={"is_recording": False, "end_time": now_ms()})

    def marker(self, index: int) -> Optional[MarkerAnnotation]:
        for m in self.markers:
            if m.index == index:
                return m
        return None

    def marker_for(self, element: Any) -> Optional[MarkerAnnotation]:
        if element is None:
            return None
        for m in self.markers:
            if m.target.element == element:
                return m
        return None

    def add_marker(self, node: ComponentNode, color: str, intent: str = "") -> "RecordingSession":
        if self.marker_for(node.element) is not None:
            return self
        marker = MarkerAnnotation(
            index=len(self.markers) + 1,
            target=node,
            intent=intent,
            color=color,
            timestamp=now_ms(),
        )
        return self.model_copy(update={"markers": self.markers + (marker,)})

    def delete_marker(self, index: int) -> "RecordingSession":
        kept = [m for m in self.markers if m.index != index]
        renumbered = tuple(m.model_copy(update={"index": i}) for i, m in enumerate(kept, start=1))
        return self.model_copy(update={"markers": renumbered})

    def update_intent(self, index: int, intent: str) -> "RecordingSession":
        markers = tuple(
            m.model_copy(update={"intent": intent}) if m.index == index else m
            for m in self.markers
        )
        return self.model_copy(update={"markers": markers})

    def recolor(self, color: str) -> "RecordingSession":
        markers = tuple(m.model_copy(update={"color": color}) for m in self.markers)
        return self.model_copy(update={"markers": markers})

    def cleared(self) -> "RecordingSession":
        return self.model_copy(update={"markers": ()})


class Viewport(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int
    height: int


class Environment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: Optional[str] = None
    viewport: Optional[Viewport] = None
    user_agent: Optional[str] = Field(None, alias="userAgent")
    timestamp: Optional[int] = None
