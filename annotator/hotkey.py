# annotator/hotkey.py
import asyncio
import functools
import logging
import threading
from typing import Awaitable, Callable, Dict, Optional, Set

import keyboard  # requires admin on Windows sometimes

logger = logging.getLogger(__name__)


class StopSignal:
    def __init__(self):
        self._flag = False
        self._lock = threading.Lock()

    @property
    def triggered(self) -> bool:
        with self._lock:
            return self._flag

    def trigger(self):
        with self._lock:
            self._flag = True


class HotkeyRouter:
    """Global (OS-level) hotkeys, delivered onto the asyncio loop.

    ``keyboard`` calls back on its own listener thread; every callback is
    handed to the loop with ``call_soon_threadsafe`` so handlers may touch
    session state and schedule Playwright calls.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.routes: Dict[str, Callable[[], Optional[Awaitable]]] = {}
        self._thread: Optional[threading.Thread] = None
        # scheduled handler tasks, held until they finish
        self._tasks: Set[asyncio.Task] = set()

    def add(self, hotkey: str, handler: Callable[[], Optional[Awaitable]]):
        self.routes[hotkey] = handler

    def _dispatch(self, hotkey: str):
        handler = self.routes[hotkey]
        try:
            result = handler()
        except Exception:
            logger.exception("Hotkey %s handler failed", hotkey)
            return
        if asyncio.iscoroutine(result):
            task = self.loop.create_task(result)
            self._tasks.add(task)
            task.add_done_callback(functools.partial(self._finished, hotkey))

    def _finished(self, hotkey: str, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Hotkey %s task failed", hotkey, exc_info=task.exception())

    def _callback(self, hotkey: str):
        def _cb():
            self.loop.call_soon_threadsafe(self._dispatch, hotkey)
        return _cb

    def _register(self):
        for hotkey in self.routes:
            keyboard.add_hotkey(hotkey, self._callback(hotkey))

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self._register, daemon=True)
        self._thread.start()
        return self._thread

    def stop(self):
        for hotkey in self.routes:
            try:
                keyboard.remove_hotkey(hotkey)
            except (KeyError, ValueError):
                logger.debug("Hotkey %s was not registered", hotkey)

