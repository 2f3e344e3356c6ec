# annotator/bridge.py
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from playwright.async_api import Error as PWError, Frame, Page

from .clipboard import PageClipboard
from .events import BreadcrumbInput, EditorInput, KeyInput, MarkerListInput, PointerInput, ToolbarInput
from .export import export_session
from .models import MARKER_COLORS, OUTPUT_DETAILS, Environment, Viewport, now_ms
from .overlay import Overlay
from .report import component_info, describe_node
from .scripts import BRIDGE_NAME, OVERLAY_JS, RENDER_JS, SCROLL_TO_JS
from .session import AppState
from .snapshot import SnapshotDecoder

logger = logging.getLogger(__name__)

COLOR_CYCLE = tuple(MARKER_COLORS)


def _next(options, current):
    return options[(options.index(current) + 1) % len(options)]


class OverlayBridge:
    """Connects the page script to the interaction engine.

    Every page event arrives through one Playwright binding, is decoded into
    an input model, handed to the :class:`Overlay`, and answered with a fresh
    render of the overlay view.
    """

    def __init__(
        self,
        page: Page,
        overlay: Overlay,
        decoder: SnapshotDecoder,
        state: AppState,
        clipboard: Optional[PageClipboard] = None,
    ):
        self.page = page
        self.overlay = overlay
        self.decoder = decoder
        self.state = state
        self.clipboard = clipboard or PageClipboard(page)
        self.environment = Environment()
        self.on_export: Optional[Callable[[Optional[str]], None]] = None
        self._seen_session = state.session
        self._lock = asyncio.Lock()
        overlay.on("component_hovered", self._log_locked)

    # ---- install ----

    async def install(self):
        await self.page.expose_binding(BRIDGE_NAME, self._binding)
        # all future documents preload the overlay script
        await self.page.context.add_init_script(OVERLAY_JS)
        await self._start_in_frame(self.page.main_frame)
        self.page.on("framenavigated", lambda fr: asyncio.create_task(self._on_navigated(fr)))
        self.page.on("console", lambda msg: logger.debug("[console] %s: %s", msg.type, msg.text))

    async def _start_in_frame(self, fr: Frame):
        try:
            await fr.evaluate(OVERLAY_JS)
            print(f"   [overlay] attached → frame '{fr.name or '(no-name)'}' url={fr.url}")
        except PWError as e:
            print(f"   [overlay] attach failed in frame url={fr.url} : {e}")

    async def _on_navigated(self, fr: Frame):
        if fr is not self.page.main_frame:
            return
        # new document: no element from the old one can still be hovered or locked
        if self.overlay.recording:
            self.overlay.stop_recording()
        await self.render()

    # ---- events ----

    async def _binding(self, source: Dict[str, Any], payload: Dict[str, Any]):
        frame = source.get("frame") if isinstance(source, dict) else None
        if frame is not None and frame is not self.page.main_frame:
            return
        async with self._lock:
            try:
                await self.dispatch(payload)
            except Exception:
                logger.exception("Failed to handle %s event", payload.get("etype"))
            await self.render()

    async def dispatch(self, payload: Dict[str, Any]):
        etype = payload.get("etype")
        document = self.decoder.decode(payload)
        self._remember_environment(payload)

        if etype in ("pointermove", "click"):
            event = PointerInput(
                etype=etype,
                x=payload.get("x", 0),
                y=payload.get("y", 0),
                button=payload.get("button", "left"),
                url=payload.get("url"),
                target=self.decoder.target_of(document, payload),
                document=document,
                default_prevented=bool(payload.get("suppressed")),
            )
            if etype == "click":
                self.overlay.click(event)
            else:
                self.overlay.pointer_move(event)
        elif etype == "keydown":
            self.overlay.key(KeyInput.model_validate(payload))
        elif etype == "breadcrumb":
            self.overlay.breadcrumb(BreadcrumbInput.model_validate(payload))
        elif etype == "editor":
            self.overlay.editor(EditorInput.model_validate(payload))
        elif etype == "toolbar":
            await self.toolbar(ToolbarInput.model_validate(payload))
        elif etype == "marker":
            await self.marker_list(MarkerListInput.model_validate(payload))
        else:
            logger.debug("Ignoring page event %r", etype)

        self._check_session()

    async def toolbar(self, event: ToolbarInput):
        settings = self.state.settings
        if event.action == "record":
            self.overlay.toggle_recording()
        elif event.action == "copy":
            await self.export()
        elif event.action == "copy_node":
            await self.copy_node()
        elif event.action == "markers":
            self.overlay.toggle_markers_panel()
        elif event.action == "clear":
            self.state.clear_markers()
        elif event.action == "detail":
            self.state.update_settings(output_detail=_next(OUTPUT_DETAILS, settings.output_detail))
        elif event.action == "color":
            self.state.update_settings(marker_color=_next(COLOR_CYCLE, settings.marker_color))
        elif event.action == "theme":
            self.state.update_settings(is_dark_mode=not settings.is_dark_mode)

    async def export(self) -> Optional[str]:
        env = self.environment.model_copy(update={"timestamp": now_ms()})
        text = await export_session(self.state, self.clipboard, env)
        if text is None:
            print("⚠️  Nothing copied.")
        else:
            print(f"📋 Copied report with {text.count(chr(10) + '### ')} markers to clipboard.")
        if text is not None and not self.state.session.markers:
            self.overlay.close_markers_panel()
        if self.on_export is not None:
            self.on_export(text)
        return text

    async def copy_node(self) -> Optional[str]:
        node = self.overlay.locked_node
        if node is None:
            print("⚠️  Nothing locked.")
            return None
        env = self.environment.model_copy(update={"timestamp": now_ms()})
        text = component_info(node, self.state.settings, env)
        if not await self.clipboard.write(text):
            logger.error("Could not copy component info for %s", node.display_name)
            return None
        print(f"📋 Copied {node.display_name} to clipboard.")
        return text

    # ---- markers panel ----

    async def marker_list(self, event: MarkerListInput):
        if event.action == "scroll":
            await self.scroll_to_marker(event.index)
        else:
            self.overlay.marker_list(event)

    async def scroll_to_marker(self, index: int) -> bool:
        marker = self.state.session.marker(index)
        if marker is None or marker.target.element is None:
            return False
        try:
            found = await self.page.evaluate(SCROLL_TO_JS, marker.target.element.key)
        except PWError as e:
            logger.debug("Scroll to marker %d failed: %s", index, e)
            return False
        if not found:
            logger.info("Marker %d element is no longer on the page", index)
        return bool(found)

    # ---- rendering ----

    async def render(self):
        view = self.overlay.view().model_dump(mode="json")
        try:
            await self.page.evaluate(RENDER_JS, view)
        except PWError as e:
            # navigation in flight; the next event renders again
            logger.debug("Render skipped: %s", e)

    # ---- bookkeeping ----

    def _remember_environment(self, payload: Dict[str, Any]):
        viewport = payload.get("viewport")
        self.environment = Environment(
            url=payload.get("url") or self.environment.url,
            viewport=Viewport(**viewport) if viewport else self.environment.viewport,
            user_agent=payload.get("userAgent") or self.environment.user_agent,
        )

    def _check_session(self):
        session = self.state.session
        if session is self._seen_session:
            return
        if session.id != self._seen_session.id:
            print(f"⏺  Session {session.id} {'recording' if session.is_recording else 'stopped'}")
        elif len(session.markers) != len(self._seen_session.markers):
            print(f"   [markers] {len(session.markers)} in session {session.id}")
        self._seen_session = session

    def _log_locked(self, node):
        if node is not None and self.overlay.locked_node is node:
            logger.info("Locked %s\n%s", node.display_name, describe_node(node))
