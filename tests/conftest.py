"""
Shared fixtures: a small product page rendered as an in-memory element tree,
with a fixture-backed introspection standing in for Angular's debug API.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import pytest

from annotator.dom import CHROME_ATTR, DomElement, Document
from annotator.introspection import ComponentDefinition, Introspection
from annotator.models import Rect, Viewport
from annotator.overlay import Overlay
from annotator.resolver import NodeResolver
from annotator.session import AppState


class FakeEmitter:
    """Output binding: can be subscribed to and emitted on."""

    def subscribe(self, fn):
        return fn

    def emit(self, value):
        return value


class AppComponent:
    def __init__(self):
        self.title = "Shop"


class ProductCardComponent:
    def __init__(self):
        self.product = {"name": "Blue Mug", "price": 12.5, "tags": ["kitchen"]}
        self.addToCart = FakeEmitter()
        self.quantity = 1
        self.loading = False
        self._cache = {"hidden": True}
        self.ngOnDestroyHook = None
        self.onSelect = lambda item: item


class TooltipDirective:
    def __init__(self):
        self.text = "More info"


class FakeIntrospection(Introspection):
    def __init__(self, available: bool = True):
        self.available = available
        self.hosts: Dict[int, Any] = {}
        self.directives: Dict[int, List[Any]] = {}
        self.definitions: Dict[int, ComponentDefinition] = {}

    def host(self, element: DomElement, component: Any, definition: ComponentDefinition):
        self.hosts[element.key] = component
        self.definitions[id(component)] = definition
        return component

    def apply(self, element: DomElement, directive: Any, definition: Optional[ComponentDefinition] = None):
        self.directives.setdefault(element.key, []).append(directive)
        if definition is not None:
            self.definitions[id(directive)] = definition

    def is_available(self) -> bool:
        return self.available

    def component_for(self, element):
        return self.hosts.get(element.key)

    def owning_component_for(self, element):
        for ancestor in element.ancestors():
            component = self.hosts.get(ancestor.key)
            if component is not None:
                return component
        return None

    def behaviors_for(self, element):
        return list(self.directives.get(element.key, []))

    def definition_of(self, component):
        return self.definitions.get(id(component))

    def fields_of(self, component) -> Mapping[str, Any]:
        return dict(vars(component))


CARD_STYLES = {
    "display": "block",
    "position": "relative",
    "width": "300px",
    "height": "150px",
    "padding": "16px",
    "margin": "0px",
    "background-color": "rgb(255, 255, 255)",
    "color": "rgb(0, 0, 0)",
    "font-size": "16px",
    "font-weight": "400",
    "font-family": "Inter",
    "border": "none",
    "border-radius": "8px",
    "opacity": "1",
    "cursor": "auto",
    "z-index": "auto",
}


@dataclass
class FakePage:
    document: Document
    introspection: FakeIntrospection
    el: Dict[str, DomElement] = field(default_factory=dict)
    components: Dict[str, Any] = field(default_factory=dict)


def build_page(available: bool = True) -> FakePage:
    html = DomElement("html")
    body = html.append(DomElement("body", rect=Rect(x=0, y=0, width=1280, height=800)))
    root = body.append(DomElement("app-root", rect=Rect(x=0, y=0, width=1280, height=800)))
    grid = root.append(DomElement("div", classes=["grid"], rect=Rect(x=0, y=100, width=1280, height=500)))
    card = grid.append(DomElement(
        "app-product-card",
        classes=["card", "featured"],
        attributes={"role": "region", "aria-label": "Blue Mug card"},
        rect=Rect(x=100, y=200, width=300, height=150),
        styles=CARD_STYLES,
    ))
    title = card.append(DomElement("h2", classes=["title"], text="Blue Mug", rect=Rect(x=110, y=210, width=280, height=30)))
    button = card.append(DomElement(
        "button",
        classes=["btn", "primary"],
        text="Add to cart",
        attributes={"type": "button", "tabindex": "0"},
        rect=Rect(x=110, y=300, width=120, height=40),
    ))
    icon = button.append(DomElement("span", classes=["icon"], rect=Rect(x=115, y=305, width=16, height=16)))
    other = grid.append(DomElement("app-product-card", classes=["card"], rect=Rect(x=450, y=200, width=300, height=150)))
    toolbar = body.append(DomElement(
        "div",
        classes=["ag-toolbar"],
        attributes={CHROME_ATTR: ""},
        rect=Rect(x=1100, y=740, width=160, height=40),
    ))
    toolbar_button = toolbar.append(DomElement("button", text="Copy", rect=Rect(x=1110, y=745, width=60, height=30)))

    ins = FakeIntrospection(available)
    app = ins.host(root, AppComponent(), ComponentDefinition("AppComponent", [["app-root"]]))
    card_cmp = ins.host(card, ProductCardComponent(), ComponentDefinition(
        "ProductCardComponent",
        [["app-product-card"]],
        inputs={"product": "product", "qty": "quantity", "discount": "discount"},
        outputs={"addToCart": "addToCart"},
    ))
    other_cmp = ins.host(other, ProductCardComponent(), ComponentDefinition(
        "ProductCardComponent", [["app-product-card"]], inputs={"product": "product"}
    ))
    tip = TooltipDirective()
    ins.apply(button, tip, ComponentDefinition("TooltipDirective", [["", "appTooltip", ""]]))
    ins.apply(button, object(), ComponentDefinition("Object"))

    document = Document(html, url="https://shop.example.com/products?page=2",
                        viewport=Viewport(width=1280, height=800), user_agent="Mozilla/5.0 TestAgent")
    return FakePage(
        document=document,
        introspection=ins,
        el={
            "html": html, "body": body, "root": root, "grid": grid, "card": card, "title": title,
            "button": button, "icon": icon, "other": other, "toolbar": toolbar,
            "toolbar_button": toolbar_button,
        },
        components={"app": app, "card": card_cmp, "other": other_cmp, "tooltip": tip},
    )


@pytest.fixture
def page() -> FakePage:
    return build_page()


@pytest.fixture
def resolver(page) -> NodeResolver:
    return NodeResolver(page.introspection)


@pytest.fixture
def state() -> AppState:
    return AppState()


@pytest.fixture
def overlay(resolver, state) -> Overlay:
    return Overlay(resolver, state)
