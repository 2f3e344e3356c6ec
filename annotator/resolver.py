# annotator/resolver.py
import itertools
import logging
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .dom import DomElement
from .introspection import ComponentDefinition, Introspection
from .models import KEY_COMPUTED_STYLES, ComponentNode, ParentInfo, now_ms
from .sanitizer import ValueSanitizer, is_internal

logger = logging.getLogger(__name__)

FRAME_BUDGET_MS = 16.0
MAX_BREADCRUMBS = 8

_MISSING = object()


class Breadcrumb(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    label: str
    element: Any = Field(repr=False)


def element_label(element: DomElement) -> str:
    label = element.tag_name
    if element.id:
        label += f"#{element.id}"
    elif element.class_list:
        label += f".{element.class_list[0]}"
    return label


class NodeResolver:
    """Maps an element handle to a :class:`ComponentNode`."""

    def __init__(self, introspection: Introspection, sanitizer: Optional[ValueSanitizer] = None):
        self.introspection = introspection
        self.sanitizer = sanitizer or ValueSanitizer()
        self._uids = itertools.count(1)

    def is_available(self) -> bool:
        return self.introspection.is_available()

    def resolve(self, element: Optional[DomElement]) -> Optional[ComponentNode]:
        if element is None:
            return None
        if not self.introspection.is_available():
            logger.warning("Component debug API not available; cannot resolve elements")
            return None

        started = time.perf_counter()
        try:
            node = self._resolve(element)
        except Exception:
            logger.exception("Error walking component for %r", element)
            return None

        elapsed = (time.perf_counter() - started) * 1000
        if elapsed > FRAME_BUDGET_MS:
            logger.warning("Node resolution took %.2fms (> %.0fms frame budget)", elapsed, FRAME_BUDGET_MS)
        return node

    def _resolve(self, element: DomElement) -> Optional[ComponentNode]:
        ins = self.introspection
        component = ins.component_for(element)
        if component is None:
            owner = ins.owning_component_for(element)
            if owner is None:
                return None
            host = self._find_host(element, owner)
            if host != element:
                return self._plain_node(element, owner)
            component = owner

        definition = ins.definition_of(component)
        fields = ins.fields_of(component)
        return ComponentNode(
            uid=self._next_uid(),
            display_name=ins.name_of(component),
            selector=definition.selector if definition else "unknown",
            dom_path=compute_dom_path(element),
            bound_properties=self._bound_properties(fields, definition),
            emitted_events=list(definition.outputs) if definition else [],
            public_state=self._public_state(fields, definition),
            element=element,
            rect=element.rect,
            computed_styles=computed_styles(element),
            behaviors=self._behaviors(element),
            parent=self._parent_info(element),
        )

    def _plain_node(self, element: DomElement, owner: Any) -> ComponentNode:
        return ComponentNode(
            uid=self._next_uid(),
            display_name=element_label(element),
            selector=element.tag_name,
            dom_path=compute_dom_path(element),
            element=element,
            rect=element.rect,
            computed_styles=computed_styles(element),
            behaviors=self._behaviors(element),
            parent=self._identity(owner),
            is_plain=True,
        )

    # ---- logical layer ----

    def _bound_properties(self, fields, definition: Optional[ComponentDefinition]) -> Dict[str, Any]:
        if definition is None:
            return {}
        bound = {}
        for public_name, prop in definition.inputs.items():
            value = fields.get(prop, _MISSING)
            if value is _MISSING:
                continue
            bound[public_name] = self.sanitizer.sanitize(value)
        return bound

    def _public_state(self, fields, definition: Optional[ComponentDefinition]) -> Dict[str, Any]:
        claimed = set()
        if definition is not None:
            claimed.update(definition.inputs.values())
            claimed.update(definition.outputs.values())
        state = {}
        for key, value in fields.items():
            if is_internal(key) or key in claimed or callable(value):
                continue
            state[key] = self.sanitizer.sanitize(value)
        return state

    # ---- structure ----

    def _behaviors(self, element: DomElement) -> List[str]:
        names = (self.introspection.name_of(b) for b in self.introspection.behaviors_for(element))
        return [name for name in names if name and name != "Object"]

    def _identity(self, component: Any) -> ParentInfo:
        definition = self.introspection.definition_of(component)
        return ParentInfo(
            display_name=self.introspection.name_of(component),
            selector=definition.selector if definition else "unknown",
        )

    def _parent_info(self, element: DomElement) -> Optional[ParentInfo]:
        for ancestor in element.ancestors():
            component = self.introspection.component_for(ancestor)
            if component is not None:
                return self._identity(component)
        return None

    def _find_host(self, element: DomElement, component: Any) -> Optional[DomElement]:
        current: Optional[DomElement] = element
        while current is not None:
            if self.introspection.component_for(current) == component:
                return current
            current = current.parent
        return None

    def _next_uid(self) -> str:
        return f"ag-{now_ms()}-{next(self._uids)}"

    # ---- breadcrumbs ----

    def label_for(self, element: DomElement) -> str:
        try:
            component = self.introspection.component_for(element)
        except Exception:
            logger.exception("Error reading component for breadcrumb %r", element)
            component = None
        if component is not None:
            definition = self.introspection.definition_of(component)
            if definition is not None and definition.selector != "unknown":
                return f"<{definition.selector}>"
            return self.introspection.name_of(component)
        return element_label(element)

    def breadcrumbs(self, node: ComponentNode) -> List[Breadcrumb]:
        """Ancestor chain of the node's element below <body>, root-most first."""
        element = node.element
        if element is None:
            return []
        chain = [element]
        for ancestor in element.ancestors():
            if ancestor.tag_name in ("body", "html"):
                break
            chain.append(ancestor)
        chain = chain[:MAX_BREADCRUMBS]
        chain.reverse()
        return [
            Breadcrumb(label=node.display_name if el == element else self.label_for(el), element=el)
            for el in chain
        ]


def compute_dom_path(element: DomElement) -> str:
    parts = []
    current: Optional[DomElement] = element
    while current is not None and current.tag_name != "body":
        parts.append(element_label(current))
        current = current.parent
    parts.append("body")
    return " > ".join(reversed(parts))


def computed_styles(element: DomElement) -> Dict[str, str]:
    return {prop: element.computed_style(prop) for prop in KEY_COMPUTED_STYLES}
