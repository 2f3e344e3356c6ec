# annotator/clipboard.py
import logging

from playwright.async_api import Error as PWError, Page

from .scripts import CLIPBOARD_JS, FALLBACK_COPY_JS

logger = logging.getLogger(__name__)


class PageClipboard:
    """Writes text through the page's clipboard, with a select-and-copy fallback."""

    def __init__(self, page: Page):
        self.page = page

    async def write(self, text: str) -> bool:
        try:
            return bool(await self.page.evaluate(CLIPBOARD_JS, text))
        except PWError as e:
            logger.warning("Clipboard API write failed (%s); trying fallback", e)
        try:
            ok = bool(await self.page.evaluate(FALLBACK_COPY_JS, text))
        except PWError as e:
            logger.error("Fallback copy failed: %s", e)
            return False
        if not ok:
            logger.error("Fallback copy was refused by the page")
        return ok
