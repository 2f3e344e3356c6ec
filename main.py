# main.py
import asyncio
import logging

import aiohttp
from playwright.async_api import async_playwright, Error as PWError

from config import (
    URL,
    HEADLESS,
    VIEWPORT,
    GLOBAL_HOTKEYS,
    EXPORT_HOTKEY,
    QUIT_HOTKEY,
    LOG_LEVEL,
    OUTPUT_DETAIL,
    MARKER_COLOR,
    CLEAR_ON_COPY,
    BLOCK_PAGE_INTERACTIONS,
    SHOW_FRAMEWORK_COMPONENTS,
    DARK_MODE,
    COLLECTOR_ENABLED,
    COLLECTOR_URL,
    COLLECTOR_POLL_SECONDS,
)

from annotator.bridge import OverlayBridge
from annotator.collector import CollectorClient, CollectorUnavailable, NotConnectedError
from annotator.hotkey import HotkeyRouter, StopSignal
from annotator.introspection import AngularIntrospection
from annotator.models import MarkerAnnotation, Settings
from annotator.overlay import Overlay
from annotator.resolver import NodeResolver
from annotator.session import AppState
from annotator.snapshot import SnapshotDecoder

logger = logging.getLogger("annotator")


def initial_settings() -> Settings:
    return Settings(
        output_detail=OUTPUT_DETAIL,
        marker_color=MARKER_COLOR,
        clear_on_copy=CLEAR_ON_COPY,
        block_page_interactions=BLOCK_PAGE_INTERACTIONS,
        show_framework_components=SHOW_FRAMEWORK_COMPONENTS,
        is_dark_mode=DARK_MODE,
    )


# --------------------------------------------------------------------
# Remote collector (optional)
# --------------------------------------------------------------------

async def connect_collector(overlay: Overlay, bridge: OverlayBridge) -> CollectorClient:
    collector = CollectorClient(COLLECTOR_URL, poll_seconds=COLLECTOR_POLL_SECONDS)
    try:
        session_id = await collector.connect()
        print(f"🔗 Collector connected: {COLLECTOR_URL} (session {session_id})")
    except CollectorUnavailable as e:
        print(f"⚠️  {e}. Markers stay local.")

    async def _submit(marker: MarkerAnnotation):
        try:
            await collector.submit(marker, bridge.environment.url)
        except NotConnectedError:
            logger.debug("Collector offline; marker %d not sent", marker.index)
        except aiohttp.ClientError as e:
            logger.warning("Collector rejected marker %d: %s", marker.index, e)
        except asyncio.TimeoutError:
            logger.warning("Collector timed out on marker %d", marker.index)

    pending = set()

    def _schedule(marker: MarkerAnnotation):
        task = asyncio.create_task(_submit(marker))
        pending.add(task)
        task.add_done_callback(pending.discard)

    overlay.on("marker_added", _schedule)
    return collector


# --------------------------------------------------------------------
# Main
# --------------------------------------------------------------------

async def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    loop = asyncio.get_running_loop()

    state = AppState(settings=initial_settings())
    introspection = AngularIntrospection()
    overlay = Overlay(NodeResolver(introspection), state)
    stop_signal = StopSignal()

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=HEADLESS, args=["--start-maximized"])
        context = await browser.new_context(viewport=VIEWPORT)
        await context.grant_permissions(["clipboard-read", "clipboard-write"])
        page = await context.new_page()

        # Inject BEFORE navigation so the first document already has the overlay
        bridge = OverlayBridge(page, overlay, SnapshotDecoder(introspection), state)
        await bridge.install()

        collector = await connect_collector(overlay, bridge) if COLLECTOR_ENABLED else None

        router = None
        if GLOBAL_HOTKEYS:
            async def _export():
                await bridge.export()
                # clear_on_copy may have emptied the badges
                await bridge.render()

            router = HotkeyRouter(loop)
            router.add(EXPORT_HOTKEY, _export)
            router.add(QUIT_HOTKEY, stop_signal.trigger)
            router.start()
            print(f"⌨️  Hotkeys: export={EXPORT_HOTKEY}  quit={QUIT_HOTKEY}")

        print(f"→ navigating to: {URL}")
        await page.goto(URL, wait_until="domcontentloaded")
        print("⏺  Ready. Ctrl+Shift+I in the page toggles recording, Escape stops it.")

        page.on("close", lambda _: stop_signal.trigger())

        # Keep alive until the quit hotkey or the page closes
        while not stop_signal.triggered:
            await asyncio.sleep(0.1)

        if router is not None:
            router.stop()
        if collector is not None:
            await collector.stop()

        try:
            await context.close()
            await browser.close()
        except PWError as e:
            logger.debug("Browser already closed: %s", e)

    markers = len(state.session.markers)
    print(f"💾 Session {state.session.id} ended with {markers} marker{'s' if markers != 1 else ''} (not saved).")
    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
