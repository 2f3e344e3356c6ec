# annotator/overlay.py
"""
Overlay state machine: turns pointer and keyboard input into hover, lock,
breadcrumb and marker events.

    INACTIVE --toggle--> ARMED --move over node--> HOVERING
    HOVERING --click--> LOCKED --click same--> marker added (or EDITING)
    LOCKED --click other--> LOCKED(other)     LOCKED --click empty--> HOVERING
    any --Escape--> INACTIVE
"""
import enum
import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Optional

from pydantic import BaseModel

from .dom import CLICK_CAPTURE_CLASS, DomElement, is_chrome
from .events import BreadcrumbInput, EditorInput, KeyInput, MarkerListInput, PointerInput
from .models import MARKER_COLORS, ComponentNode, MarkerAnnotation, Rect
from .resolver import Breadcrumb, NodeResolver
from .session import AppState

logger = logging.getLogger(__name__)

CROSSHAIR = "crosshair"
TOOLTIP_OFFSET = 12
EDITOR_GAP = 10


class Phase(str, enum.Enum):
    INACTIVE = "inactive"
    ARMED = "armed"
    HOVERING = "hovering"
    LOCKED = "locked"
    EDITING = "editing"


class Tooltip(BaseModel):
    text: str
    x: float
    y: float


class Highlight(BaseModel):
    rect: Rect
    color: str
    locked: bool = False


class MarkerBadge(BaseModel):
    index: int
    color: str
    rect: Rect
    intent: str = ""
    label: str = ""


class EditorBox(BaseModel):
    index: int
    intent: str
    label: str
    top: float
    left: float


class OverlayView(BaseModel):
    """Everything the page script needs to draw the overlay."""

    recording: bool = False
    phase: Phase = Phase.INACTIVE
    cursor: str = ""
    highlight: Optional[Highlight] = None
    tooltip: Optional[Tooltip] = None
    breadcrumbs: List[str] = []
    breadcrumb_index: Optional[int] = None
    markers: List[MarkerBadge] = []
    editor: Optional[EditorBox] = None
    markers_panel: bool = False
    block_page_interactions: bool = False
    output_detail: str = "forensic"
    marker_color: str = "blue"
    dark: bool = False


class Overlay:
    def __init__(self, resolver: NodeResolver, state: AppState):
        self.resolver = resolver
        self.state = state
        self.recording = False
        self.cursor = ""
        self.hovered_node: Optional[ComponentNode] = None
        self.locked_node: Optional[ComponentNode] = None
        self.editing_marker: Optional[MarkerAnnotation] = None
        self.editor_position = (0.0, 0.0)
        self.highlight: Optional[Rect] = None
        self.tooltip: Optional[Tooltip] = None
        self.breadcrumbs: List[Breadcrumb] = []
        self.breadcrumb_index: Optional[int] = None
        self.markers_panel_open = False
        self._handlers: DefaultDict[str, List[Callable]] = defaultdict(list)

    # ---- observers ----

    def on(self, event: str, handler: Callable):
        self._handlers[event].append(handler)

    def _emit(self, event: str, payload=None):
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception:
                logger.exception("overlay %s handler failed", event)

    # ---- state queries ----

    @property
    def phase(self) -> Phase:
        if not self.recording:
            return Phase.INACTIVE
        if self.editing_marker is not None:
            return Phase.EDITING
        if self.locked_node is not None:
            return Phase.LOCKED
        if self.hovered_node is not None:
            return Phase.HOVERING
        return Phase.ARMED

    @property
    def breadcrumbs_visible(self) -> bool:
        return len(self.breadcrumbs) > 1

    # ---- recording ----

    def start_recording(self) -> bool:
        if not self.resolver.is_available():
            logger.error("Cannot start recording: component debug API not available")
            return False
        self.state.start_session()
        self.recording = True
        self.markers_panel_open = False
        self.cursor = CROSSHAIR
        self._emit("recording_changed", True)
        return True

    def stop_recording(self):
        was_recording = self.recording
        self.recording = False
        self._reset()
        self.state.stop_session()
        if was_recording:
            self._emit("recording_changed", False)

    def toggle_recording(self) -> bool:
        if self.recording:
            self.stop_recording()
        else:
            self.start_recording()
        return self.recording

    def _reset(self):
        self.hovered_node = None
        self.locked_node = None
        self.editing_marker = None
        self.highlight = None
        self.tooltip = None
        self.breadcrumbs = []
        self.breadcrumb_index = None
        self.cursor = ""

    # ---- pointer ----

    def _pierce(self, event: PointerInput) -> Optional[DomElement]:
        """Look through the click-capture layer at the element underneath."""
        target = event.target
        if target is None or CLICK_CAPTURE_CLASS not in target.class_list or event.document is None:
            return target
        target.hidden = True
        try:
            underlying = event.document.element_from_point(event.x, event.y)
        finally:
            target.hidden = False
        return underlying if underlying is not None else target

    def pointer_move(self, event: PointerInput):
        if not self.recording or self.locked_node is not None:
            return
        target = self._pierce(event)
        if target is None or is_chrome(target):
            return
        node = self.resolver.resolve(target)
        if node is None:
            self._clear_hover()
            return
        self._show(node, event.x, event.y)
        self.breadcrumbs = self.resolver.breadcrumbs(node)
        self.breadcrumb_index = len(self.breadcrumbs) - 1 if self.breadcrumbs else None
        self._emit("component_hovered", node)

    def click(self, event: PointerInput) -> bool:
        """Returns True when the page's own click handling was suppressed."""
        if not self.recording:
            return False
        target = self._pierce(event)
        if target is None or is_chrome(target):
            return False
        event.suppress()

        if self.editing_marker is not None:
            self.editor_cancel()

        node = self.resolver.resolve(target)
        if self.locked_node is not None:
            if node is None:
                self._unlock()
            elif node.element == self.locked_node.element:
                self._confirm(self.locked_node)
            else:
                self._lock(node, event.x, event.y)
            return True

        if node is None:
            return True
        existing = self.state.session.marker_for(node.element)
        if existing is not None:
            self._open_editor(existing)
        else:
            self._lock(node, event.x, event.y)
        return True

    # ---- breadcrumbs ----

    def breadcrumb(self, event: BreadcrumbInput):
        """Select an entry of the trail shown for the hovered or locked node.

        A plain click locks that entry (from hover as well as from a lock);
        clicking the already locked entry or double-clicking any entry confirms.
        """
        if not self.recording or not (0 <= event.index < len(self.breadcrumbs)):
            return
        selected = self.locked_node is not None and event.index == self.breadcrumb_index
        if event.double or selected:
            if selected:
                node = self.locked_node
            else:
                node = self.resolver.resolve(self.breadcrumbs[event.index].element)
            if node is not None:
                self._confirm(node)
            return
        node = self.resolver.resolve(self.breadcrumbs[event.index].element)
        if node is None:
            return
        self.locked_node = node
        self.hovered_node = node
        self.highlight = node.rect
        self.breadcrumb_index = event.index
        self.tooltip = self._tooltip(node, node.rect.x, node.rect.bottom)
        self._emit("component_hovered", node)

    # ---- keyboard ----

    def key(self, event: KeyInput) -> bool:
        if event.is_toggle:
            event.suppress()
            self.toggle_recording()
            return True
        if event.is_escape and self.recording:
            self.stop_recording()
            return True
        if self.recording and self.state.settings.block_page_interactions:
            event.suppress()
            return True
        return False

    # ---- inline editor ----

    def editor(self, event: EditorInput):
        if event.action == "save":
            self.editor_save(event.index, event.intent)
        elif event.action == "delete":
            self.editor_delete(event.index)
        else:
            self.editor_cancel()

    def editor_save(self, index: int, intent: str):
        self.state.update_intent(index, intent)
        self.editing_marker = None

    def editor_delete(self, index: int):
        self.editing_marker = None
        self.state.delete_marker(index)
        self._emit("marker_deleted", index)

    def editor_cancel(self):
        self.editing_marker = None

    # ---- markers panel ----

    def toggle_markers_panel(self) -> bool:
        self.markers_panel_open = not self.markers_panel_open
        return self.markers_panel_open

    def close_markers_panel(self):
        self.markers_panel_open = False

    def marker_list(self, event: MarkerListInput):
        """Edit or delete from the panel; works with recording stopped too."""
        marker = self.state.session.marker(event.index)
        if marker is None:
            return
        if event.action == "edit":
            self._open_editor(marker)
        elif event.action == "delete":
            self.editor_delete(event.index)

    # ---- transitions ----

    def _show(self, node: ComponentNode, x: float, y: float):
        self.hovered_node = node
        self.highlight = node.rect
        self.tooltip = self._tooltip(node, x, y)

    def _lock(self, node: ComponentNode, x: float, y: float):
        self._show(node, x, y)
        self.locked_node = node
        self.breadcrumbs = self.resolver.breadcrumbs(node)
        self.breadcrumb_index = len(self.breadcrumbs) - 1 if self.breadcrumbs else None
        self._emit("component_hovered", node)

    def _unlock(self):
        self.locked_node = None
        self.breadcrumbs = []
        self.breadcrumb_index = None

    def _confirm(self, node: ComponentNode):
        existing = self.state.session.marker_for(node.element)
        if existing is not None:
            self._open_editor(existing)
        else:
            marker = self.state.add_marker(node)
            if marker is not None:
                self._emit("marker_added", marker)
        self._unlock()
        self.hovered_node = node
        self.highlight = node.rect

    def _open_editor(self, marker: MarkerAnnotation):
        rect = marker.target.rect
        self.editor_position = (rect.bottom + EDITOR_GAP, rect.left)
        self.editing_marker = marker

    def _clear_hover(self):
        self.hovered_node = None
        self.highlight = None
        self.tooltip = None
        self.breadcrumbs = []
        self.breadcrumb_index = None
        self._emit("component_hovered", None)

    def _tooltip(self, node: ComponentNode, x: float, y: float) -> Tooltip:
        if self.state.settings.show_framework_components and not node.is_plain:
            text = f"<{node.selector}> {node.display_name}"
        else:
            text = node.display_name
        return Tooltip(text=text, x=x + TOOLTIP_OFFSET, y=y + TOOLTIP_OFFSET)

    # ---- rendering ----

    def view(self) -> OverlayView:
        settings = self.state.settings
        color = MARKER_COLORS[settings.marker_color]
        highlight = None
        if self.highlight is not None:
            highlight = Highlight(rect=self.highlight, color=color, locked=self.locked_node is not None)
        editor = None
        if self.editing_marker is not None:
            # the session may have been replaced since the editor opened
            current = self.state.session.marker(self.editing_marker.index) or self.editing_marker
            top, left = self.editor_position
            editor = EditorBox(
                index=current.index,
                intent=current.intent,
                label=current.target.selector or current.target.display_name,
                top=top,
                left=left,
            )
        return OverlayView(
            recording=self.recording,
            phase=self.phase,
            cursor=self.cursor,
            highlight=highlight,
            tooltip=self.tooltip,
            breadcrumbs=[b.label for b in self.breadcrumbs] if self.breadcrumbs_visible else [],
            breadcrumb_index=self.breadcrumb_index if self.breadcrumbs_visible else None,
            markers=[
                MarkerBadge(index=m.index, color=MARKER_COLORS[m.color], rect=m.target.rect, intent=m.intent,
                            label=m.target.display_name)
                for m in self.state.session.markers
            ],
            editor=editor,
            markers_panel=self.markers_panel_open,
            block_page_interactions=settings.block_page_interactions,
            output_detail=settings.output_detail,
            marker_color=settings.marker_color,
            dark=settings.is_dark_mode,
        )
