# config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes", "on")


# --- Browser ---
URL: str = os.getenv("URL") or "http://localhost:4200"
HEADLESS: bool = _flag("HEADLESS", False)
VIEWPORT = {
    "width": int(os.getenv("VIEWPORT_WIDTH") or 1440),
    "height": int(os.getenv("VIEWPORT_HEIGHT") or 900),
}

# --- Global hotkeys (OS level, work while the browser has focus) ---
GLOBAL_HOTKEYS: bool = _flag("GLOBAL_HOTKEYS", True)
EXPORT_HOTKEY: str = os.getenv("EXPORT_HOTKEY") or "ctrl+alt+c"
QUIT_HOTKEY: str = os.getenv("QUIT_HOTKEY") or "ctrl+alt+q"

LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").upper()

# --- Initial settings ---
OUTPUT_DETAIL: str = os.getenv("OUTPUT_DETAIL") or "forensic"
MARKER_COLOR: str = os.getenv("MARKER_COLOR") or "blue"
CLEAR_ON_COPY: bool = _flag("CLEAR_ON_COPY", False)
BLOCK_PAGE_INTERACTIONS: bool = _flag("BLOCK_PAGE_INTERACTIONS", False)
SHOW_FRAMEWORK_COMPONENTS: bool = _flag("SHOW_FRAMEWORK_COMPONENTS", True)
DARK_MODE: bool = _flag("DARK_MODE", False)

# --- Remote collector ---
COLLECTOR_ENABLED: bool = _flag("COLLECTOR_ENABLED", False)
COLLECTOR_URL: str = os.getenv("COLLECTOR_URL") or "http://localhost:4747"
COLLECTOR_POLL_SECONDS: float = float(os.getenv("COLLECTOR_POLL_SECONDS") or 2.0)
