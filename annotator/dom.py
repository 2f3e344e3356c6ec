# annotator/dom.py
import itertools
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .models import Rect, Viewport

# Marks the tool's own injected UI; anything inside is never inspected
CHROME_ATTR = "data-agentation"
# Transparent layer that catches clicks on disabled elements
CLICK_CAPTURE_CLASS = "ag-click-overlay"

# page-assigned keys are positive; handles created locally count down
_keys = itertools.count(-1, -1)


class DomElement:
    """Python-side handle of one element in the host document.

    Equality follows ``key``: the injected script gives every element a stable
    key, so handles decoded from two different snapshots of the same element
    compare equal.
    """

    def __init__(
        self,
        tag_name: str,
        id: str = "",
        classes: Iterable[str] = (),
        attributes: Optional[Dict[str, str]] = None,
        text: str = "",
        text_content: Optional[str] = None,
        rect: Optional[Rect] = None,
        styles: Optional[Dict[str, str]] = None,
        key: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.tag_name = tag_name.lower()
        self.id = id or ""
        self.class_list: List[str] = [c for c in classes if c]
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.text = text
        self._text_content = text_content
        self.rect = rect or Rect()
        self.styles: Dict[str, str] = dict(styles or {})
        self.key = key if key is not None else next(_keys)
        self.meta: Dict[str, Any] = dict(meta or {})
        self.parent: Optional["DomElement"] = None
        self.children: List["DomElement"] = []
        self.hidden = False

    def __repr__(self):
        return f"<DomElement {self.tag_name} key={self.key}>"

    def __eq__(self, other):
        if not isinstance(other, DomElement):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    # ---- tree ----

    def append(self, child: "DomElement") -> "DomElement":
        child.parent = self
        self.children.append(child)
        return child

    def ancestors(self) -> Iterator["DomElement"]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def closest(self, predicate: Callable[["DomElement"], bool]) -> Optional["DomElement"]:
        current: Optional[DomElement] = self
        while current is not None:
            if predicate(current):
                return current
            current = current.parent
        return None

    def walk(self) -> Iterator["DomElement"]:
        yield self
        for child in self.children:
            yield from child.walk()

    # ---- attributes ----

    @property
    def class_name(self) -> str:
        return " ".join(self.class_list)

    def get_attribute(self, name: str) -> Optional[str]:
        if name == "id":
            return self.id or None
        if name == "class":
            return self.class_name or None
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    @property
    def child_count(self) -> int:
        return max(self.meta.get("child_count", 0), len(self.children))

    @property
    def text_content(self) -> str:
        if self._text_content is not None:
            return self._text_content
        return self.text + "".join(c.text_content for c in self.children)

    def computed_style(self, prop: str) -> str:
        return self.styles.get(prop, "")


def is_chrome(element: Optional[DomElement]) -> bool:
    """True when the element belongs to the tool's own UI."""
    if element is None:
        return False
    return element.closest(lambda el: el.has_attribute(CHROME_ATTR)) is not None


class Document:
    def __init__(
        self,
        root: DomElement,
        url: Optional[str] = None,
        viewport: Optional[Viewport] = None,
        user_agent: Optional[str] = None,
    ):
        self.root = root
        self.url = url
        self.viewport = viewport
        self.user_agent = user_agent
        self.cursor = ""

    @property
    def body(self) -> Optional[DomElement]:
        for el in self.root.walk():
            if el.tag_name == "body":
                return el
        return None

    def find(self, key: int) -> Optional[DomElement]:
        for el in self.root.walk():
            if el.key == key:
                return el
        return None

    def element_from_point(self, x: float, y: float) -> Optional[DomElement]:
        """Topmost visible element under the point (later siblings paint on top)."""
        return self._hit(self.root, x, y)

    def _hit(self, element: DomElement, x: float, y: float) -> Optional[DomElement]:
        if element.hidden:
            return None
        for child in reversed(element.children):
            found = self._hit(child, x, y)
            if found is not None:
                return found
        if element.rect.contains(x, y) and (element.rect.width or element.rect.height):
            return element
        return None
