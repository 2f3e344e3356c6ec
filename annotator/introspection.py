# annotator/introspection.py
"""
Access to the host framework's component metadata.

The resolver only talks to :class:`Introspection`. ``AngularIntrospection``
reads the ``window.ng`` debug data captured by the injected script (see
``snapshot.py``); tests provide an in-memory tree of their own.
"""
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .dom import DomElement

logger = logging.getLogger(__name__)

# component descriptions kept across snapshots, least recently seen evicted first
MAX_REGISTERED_COMPONENTS = 2000


@dataclass(frozen=True)
class ComponentDefinition:
    display_name: str
    # nested selector lists as compiled by the framework, e.g. [["app-card"]]
    selectors: Sequence[Sequence[Optional[str]]] = ()
    # public binding name -> instance field name
    inputs: Mapping[str, str] = field(default_factory=dict)
    outputs: Mapping[str, str] = field(default_factory=dict)

    @property
    def selector(self) -> str:
        if not self.selectors or not self.selectors[0]:
            return "unknown"
        return "".join(s for s in self.selectors[0] if s) or "unknown"


@dataclass(frozen=True)
class RemoteComponent:
    """Handle of a component instance living in the browser."""

    id: int
    name: str


class Introspection(ABC):
    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def component_for(self, element: DomElement) -> Optional[Any]:
        """Component whose host element is ``element``."""

    @abstractmethod
    def owning_component_for(self, element: DomElement) -> Optional[Any]:
        """Nearest component whose template contains ``element``."""

    @abstractmethod
    def behaviors_for(self, element: DomElement) -> List[Any]:
        """Directive instances applied to ``element``."""

    @abstractmethod
    def definition_of(self, component: Any) -> Optional[ComponentDefinition]:
        ...

    @abstractmethod
    def fields_of(self, component: Any) -> Mapping[str, Any]:
        """Current instance fields, in declaration order."""

    def name_of(self, component: Any) -> str:
        definition = self.definition_of(component)
        if definition is not None:
            return definition.display_name
        return type(component).__name__


class AngularIntrospection(Introspection):
    """Angular dev-mode debug API, as captured in page snapshots.

    Every element decoded from a snapshot carries ``meta["ng"]`` with the ids
    of its host component, owning component and directives. Component
    descriptions accumulate in a registry keyed by id, capped at
    ``MAX_REGISTERED_COMPONENTS``; ``absorb`` is called once per snapshot.
    """

    def __init__(self, max_components: int = MAX_REGISTERED_COMPONENTS):
        self._available = False
        self.max_components = max_components
        self._definitions: Dict[int, ComponentDefinition] = {}
        self._fields: Dict[int, Dict[str, Any]] = {}
        self._names: "OrderedDict[int, str]" = OrderedDict()

    def absorb(self, available: bool, components: Mapping[int, Mapping[str, Any]]):
        if self._available and not available:
            logger.warning("Angular debug API disappeared from the page")
        self._available = available
        for cid, desc in components.items():
            name = desc.get("name") or "Object"
            self._names.pop(cid, None)
            self._names[cid] = name
            self._definitions[cid] = ComponentDefinition(
                display_name=name,
                selectors=desc.get("selectors") or (),
                inputs=desc.get("inputs") or {},
                outputs=desc.get("outputs") or {},
            )
            self._fields[cid] = dict(desc.get("fields") or {})
        while len(self._names) > self.max_components:
            cid, _ = self._names.popitem(last=False)
            self._definitions.pop(cid, None)
            self._fields.pop(cid, None)

    def is_available(self) -> bool:
        return self._available

    def _handle(self, cid: Optional[int]) -> Optional[RemoteComponent]:
        if cid is None or cid not in self._names:
            return None
        return RemoteComponent(id=cid, name=self._names[cid])

    def _ng(self, element: DomElement) -> Mapping[str, Any]:
        return element.meta.get("ng") or {}

    def component_for(self, element: DomElement) -> Optional[RemoteComponent]:
        return self._handle(self._ng(element).get("cmp"))

    def owning_component_for(self, element: DomElement) -> Optional[RemoteComponent]:
        return self._handle(self._ng(element).get("owner"))

    def behaviors_for(self, element: DomElement) -> List[RemoteComponent]:
        handles = (self._handle(cid) for cid in self._ng(element).get("dirs") or ())
        return [h for h in handles if h is not None]

    def definition_of(self, component: RemoteComponent) -> Optional[ComponentDefinition]:
        return self._definitions.get(component.id)

    def fields_of(self, component: RemoteComponent) -> Mapping[str, Any]:
        return self._fields.get(component.id, {})
