# annotator/report.py
"""
Markdown report of a recording session, in four tiers of detail.

    compact   label, selector, feedback
    standard  + DOM path, classes, position, key styles, environment block
    detailed  + annotation point, context, all styles, accessibility, siblings
    forensic  + selected text for long content

Every line of a lower tier appears verbatim, in the same order, in the
higher tiers.
"""
import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .dom import DomElement
from .models import ComponentNode, Environment, MarkerAnnotation, Settings
from .sanitizer import format_value

KEY_STYLE_PROPS = ("color", "background-color", "font-size", "font-weight", "display", "position")
SKIPPED_STYLE_VALUES = ("none", "normal", "auto")
CONTEXT_LENGTH = 200
SELECTED_TEXT_THRESHOLD = 100
LABEL_TEXT_LENGTH = 30
NEARBY_TEXT_LENGTH = 20
NEARBY_LIMIT = 5
NEARBY_SAMPLE = 3

TIER_RANK = {"compact": 0, "standard": 1, "detailed": 2, "forensic": 3}


def js_round(value: float) -> int:
    # half rounds up, as the browser does
    return math.floor(value + 0.5)


def iso_timestamp(ms: int) -> str:
    stamp = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def url_path(url: Optional[str]) -> str:
    if not url:
        return "/"
    try:
        return urlparse(url).path or "/"
    except ValueError:
        return "/"


# ---- header ----

def environment_block(env: Environment, detail: str) -> List[str]:
    if detail == "compact":
        return ["## Page Feedback", ""]
    lines = [f"## Page Feedback: {url_path(env.url)}", "", "**Environment:**"]
    if env.viewport is not None:
        lines.append(f"- Viewport: {env.viewport.width}×{env.viewport.height}")
    if env.url:
        lines.append(f"- URL: {env.url}")
    if env.user_agent and TIER_RANK[detail] >= TIER_RANK["detailed"]:
        lines.append(f"- User Agent: {env.user_agent}")
    if env.timestamp:
        lines.append(f"- Timestamp: {iso_timestamp(env.timestamp)}")
    lines += ["", "---", ""]
    return lines


# ---- per-marker fields ----

def element_label(node: ComponentNode, show_framework_components: bool = True) -> str:
    el: Optional[DomElement] = node.element
    if el is None:
        return f"<{node.selector}>" if node.selector else node.display_name
    tag = el.tag_name
    role = el.get_attribute("role")
    aria_label = el.get_attribute("aria-label")
    text = el.text_content.strip()[:LABEL_TEXT_LENGTH]

    if show_framework_components and node.display_name and node.display_name != tag:
        return node.display_name
    if role:
        return f'{role}: "{text or tag}"'
    if tag == "button":
        return f'button "{text or "(no text)"}"'
    if tag == "a":
        return f'link "{text or aria_label or "(no text)"}"'
    if tag == "input":
        return f"input[{el.get_attribute('type') or 'text'}]"
    if tag == "p":
        return f'paragraph: "{text[:40] + "..." if text else ""}"'
    if tag in ("section", "div") and el.class_list:
        return f"{tag}.{el.class_list[0]}"
    return f"<{node.selector}>" if node.selector else tag


def position_line(node: ComponentNode) -> str:
    r = node.rect
    return (
        f"**Position:** x:{js_round(r.x)}, y:{js_round(r.y)} "
        f"({js_round(r.width)}×{js_round(r.height)}px)"
    )


def annotation_point(node: ComponentNode, env: Environment) -> Optional[str]:
    if env.viewport is None or not env.viewport.width:
        return None
    r = node.rect
    from_left = (r.x + r.width / 2) / env.viewport.width * 100
    from_top = js_round(r.y + r.height / 2)
    return f"**Annotation at:** {from_left:.1f}% from left, {from_top}px from top"


def key_styles(styles) -> str:
    parts = []
    for prop in KEY_STYLE_PROPS:
        value = styles.get(prop)
        if value and value not in ("none", "normal"):
            parts.append(f"{prop}: {value}")
    return "; ".join(parts)


def all_styles(styles) -> str:
    return "; ".join(
        f"{prop}: {value}"
        for prop, value in styles.items()
        if value and value not in SKIPPED_STYLE_VALUES
    )


def text_context(node: ComponentNode) -> str:
    if node.element is None:
        return ""
    text = node.element.text_content.strip()
    if len(text) > CONTEXT_LENGTH:
        return text[:CONTEXT_LENGTH] + "..."
    return text


def accessibility(node: ComponentNode) -> str:
    el = node.element
    if el is None:
        return ""
    parts = []
    if el.has_attribute("tabindex"):
        parts.append("focusable")
    aria_label = el.get_attribute("aria-label")
    if aria_label:
        parts.append(f'aria-label: "{aria_label}"')
    role = el.get_attribute("role")
    if role:
        parts.append(f"role: {role}")
    return ", ".join(parts)


def _sibling_label(sibling: DomElement) -> str:
    cls = f".{sibling.class_list[0]}" if sibling.class_list else ""
    text = sibling.text_content.strip()[:NEARBY_TEXT_LENGTH]
    return f'{sibling.tag_name}{cls}' + (f' "{text}"' if text else "")


def nearby_elements(node: ComponentNode) -> str:
    el = node.element
    parent = el.parent if el is not None else None
    if parent is None:
        return ""
    nearby = [_sibling_label(s) for s in parent.children if s != el]
    if len(nearby) > NEARBY_LIMIT:
        where = parent.class_list[0] if parent.class_list else "parent"
        return ", ".join(nearby[:NEARBY_SAMPLE]) + f" ({parent.child_count} total in .{where})"
    return ", ".join(nearby)


def marker_output(
    node: ComponentNode,
    intent: str,
    index: int,
    settings: Settings,
    env: Optional[Environment] = None,
) -> str:
    env = env or Environment()
    rank = TIER_RANK[settings.output_detail]
    lines = [f"### {index}. {element_label(node, settings.show_framework_components)}"]

    if rank == 0:
        if node.selector:
            lines.append(f"**Selector:** `<{node.selector}>`")
    else:
        lines.append(f"**Full DOM Path:** {node.dom_path}")
        classes = node.element.class_list if node.element is not None else []
        if classes:
            lines.append(f"**CSS Classes:** {', '.join(classes)}")
        lines.append(position_line(node))
        key = key_styles(node.computed_styles)
        if key:
            lines.append(f"**Key Styles:** {key}")

    if rank >= 2:
        point = annotation_point(node, env)
        if point:
            lines.append(point)
        context = text_context(node)
        if context:
            lines.append(f"**Context:** {context}")
            if rank >= 3 and len(context) > SELECTED_TEXT_THRESHOLD:
                lines.append(f'**Selected text:** "{context}"')
        styles = all_styles(node.computed_styles)
        if styles:
            lines.append(f"**Computed Styles:** {styles}")
        a11y = accessibility(node)
        if a11y:
            lines.append(f"**Accessibility:** {a11y}")
        nearby = nearby_elements(node)
        if nearby:
            lines.append(f"**Nearby Elements:** {nearby}")

    if intent:
        lines.append(f"**Feedback:** {intent}")
    return "\n".join(lines)


def generate_report(
    markers: Iterable[Tuple[ComponentNode, str]],
    settings: Settings,
    env: Optional[Environment] = None,
) -> str:
    env = env or Environment()
    lines = environment_block(env, settings.output_detail)
    for index, (node, intent) in enumerate(markers, start=1):
        lines.append(marker_output(node, intent, index, settings, env))
        lines.append("")
    return "\n".join(lines)


def session_report(markers: Sequence[MarkerAnnotation], settings: Settings, env: Optional[Environment] = None) -> str:
    return generate_report(((m.target, m.intent) for m in markers), settings, env)


def component_info(node: ComponentNode, settings: Settings, env: Optional[Environment] = None) -> str:
    """Forensic block for a single node, as copied by the toolbar's copy-node action."""
    forensic = settings.model_copy(update={"output_detail": "forensic"})
    return marker_output(node, "", 1, forensic, env)


def describe_node(node: ComponentNode) -> str:
    """Plain-text inspector listing of a locked node."""
    lines = [f"{node.display_name} <{node.selector}>", f"  path: {node.dom_path}"]
    if node.parent is not None:
        lines.append(f"  parent: {node.parent.display_name} <{node.parent.selector}>")
    sections = (
        ("inputs", node.bound_properties),
        ("state", node.public_state),
    )
    for title, values in sections:
        if values:
            lines.append(f"  {title}:")
            lines.extend(f"    {key} = {format_value(value)}" for key, value in values.items())
    if node.emitted_events:
        lines.append(f"  outputs: {', '.join(node.emitted_events)}")
    if node.behaviors:
        lines.append(f"  directives: {', '.join(node.behaviors)}")
    styles = [(k, v) for k, v in node.computed_styles.items() if v and v not in ("none", "normal")]
    if styles:
        lines.append("  styles: " + "; ".join(f"{k}: {v}" for k, v in styles))
    return "\n".join(lines)
