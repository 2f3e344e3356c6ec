# annotator/session.py
import logging
from typing import Optional

from .models import ComponentNode, MarkerAnnotation, RecordingSession, Settings

logger = logging.getLogger(__name__)


class AppState:
    """Settings and the active recording session, shared by reference.

    Both attributes are only ever replaced, never edited in place, so a
    consumer holding the previous object can tell something changed with
    ``is not``.
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[RecordingSession] = None):
        self.settings = settings or Settings()
        self.session = session or RecordingSession()

    # ---- settings ----

    def update_settings(self, **changes) -> Settings:
        merged = {**self.settings.model_dump(), **changes}
        new = Settings.model_validate(merged)
        if new.marker_color != self.settings.marker_color:
            self.session = self.session.recolor(new.marker_color)
        self.settings = new
        return new

    # ---- session lifecycle ----

    def start_session(self) -> RecordingSession:
        if self.session.is_recording and self.session.markers:
            logger.info("Discarding %d markers from session %s", len(self.session.markers), self.session.id)
        self.session = RecordingSession.begin()
        return self.session

    def stop_session(self) -> RecordingSession:
        if self.session.is_recording:
            self.session = self.session.stopped()
        return self.session

    # ---- markers ----

    def add_marker(self, node: ComponentNode) -> Optional[MarkerAnnotation]:
        existing = self.session.marker_for(node.element)
        if existing is not None:
            return None
        self.session = self.session.add_marker(node, self.settings.marker_color)
        return self.session.markers[-1]

    def delete_marker(self, index: int):
        self.session = self.session.delete_marker(index)

    def update_intent(self, index: int, intent: str):
        self.session = self.session.update_intent(index, intent)

    def clear_markers(self):
        self.session = self.session.cleared()
