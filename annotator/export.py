# annotator/export.py
import logging
from typing import Optional, Protocol

from .models import Environment
from .report import session_report
from .session import AppState

logger = logging.getLogger(__name__)


class Clipboard(Protocol):
    async def write(self, text: str) -> bool:
        ...


async def export_session(state: AppState, clipboard: Clipboard, env: Optional[Environment] = None) -> Optional[str]:
    """Copy the session report; returns the text, or None when nothing was copied."""
    markers = state.session.markers
    if not markers:
        logger.info("Nothing to export: session %s has no markers", state.session.id)
        return None
    text = session_report(markers, state.settings, env)
    if not await clipboard.write(text):
        logger.error("Could not copy report for session %s", state.session.id)
        return None
    logger.info("Copied %d markers (%s)", len(markers), state.settings.output_detail)
    if state.settings.clear_on_copy:
        state.clear_markers()
    return text
