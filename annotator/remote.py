# annotator/remote.py
"""Python stand-ins for JavaScript values that cannot cross the bridge as JSON."""
import inspect
import re
from collections.abc import Mapping, Sequence
from typing import Any, Dict, Iterable, Iterator, List

_PARAMS = re.compile(r"\(([^)]*)\)")
_SINGLE_ARROW = re.compile(r"^\s*(?:async\s+)?([A-Za-z_][\w]*)\s*=>")


def signature_from_source(source: str) -> inspect.Signature:
    """Parameter list of a JS function, read from its ``toString()`` text."""
    match = _PARAMS.search(source or "")
    if match:
        text = match.group(1)
    else:
        arrow = _SINGLE_ARROW.match(source or "")
        text = arrow.group(1) if arrow else ""

    params = []
    for raw in text.split(","):
        name = raw.split("=", 1)[0].strip()
        if not name:
            continue
        kind = inspect.Parameter.POSITIONAL_OR_KEYWORD
        if name.startswith("..."):
            name = name[3:]
            kind = inspect.Parameter.VAR_POSITIONAL
        try:
            params.append(inspect.Parameter(name, kind))
        except ValueError:
            # destructuring, `$` names and the like have no Python spelling
            return inspect.Signature()
    try:
        return inspect.Signature(params)
    except ValueError:
        return inspect.Signature()


class RemoteFunction:
    def __init__(self, name: str, source: str = ""):
        self.__name__ = name or "anonymous"
        self.source = source
        self.__signature__ = signature_from_source(source)

    def __call__(self, *args, **kwargs):
        raise TypeError(f"{self.__name__} lives in the page and cannot be called")

    def __repr__(self):
        return f"<RemoteFunction {self.__name__}>"


class RemoteSymbol:
    def __init__(self, description: str = ""):
        self.description = description or "unknown"


class _RemoteCapability:
    def _unsupported(self, *args, **kwargs):
        raise TypeError(f"{type(self).__name__} lives in the page")


class RemoteObservable(_RemoteCapability):
    subscribe = _RemoteCapability._unsupported


class RemoteSubject(RemoteObservable):
    emit = _RemoteCapability._unsupported


class RemotePromise(_RemoteCapability):
    then = _RemoteCapability._unsupported


class RemoteError(Exception):
    def __init__(self, message: str, name: str = "Error"):
        super().__init__(message)
        self.name = name


class RemoteObject(Mapping):
    """Plain JS object; keys whose getter threw in the page raise on access."""

    def __init__(self, constructor_name: str, entries: Dict[str, Any], denied: Iterable[str] = ()):
        self.constructor_name = constructor_name or "Object"
        self._entries = dict(entries)
        self._denied = set(denied)
        for key in self._denied:
            self._entries.setdefault(key, None)

    def __getitem__(self, key: str) -> Any:
        if key in self._denied:
            raise PermissionError(f"getter for {key!r} threw in the page")
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class TruncatedSequence(Sequence):
    """Array of which only a prefix was shipped; ``len`` is the real length."""

    def __init__(self, length: int, items: List[Any]):
        self._length = max(length, len(items))
        self._items = list(items)

    def __len__(self) -> int:
        return self._length

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._items[i] for i in range(*index.indices(len(self._items)))]
        if index < 0:
            index += self._length
        if 0 <= index < len(self._items):
            return self._items[index]
        raise IndexError(index)
