from __future__ import annotations

import inspect
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Sequence,
    TypeVar,
    get_type_hints,
)

logger = logging.getLogger(__name__)

MAX_CHAIN_LENGTH = 16

In = TypeVar("In")
Out = TypeVar("Out")
T = TypeVar("T")


class ChainDefinitionError(TypeError):
    """A chain is malformed: wrong length, index gaps, or mismatched types."""


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"


UNSET: Any = _Unset()


@dataclass(frozen=True, slots=True)
class Link(Generic[In, Out]):
    """
    One stage of a chain.

    ``takes`` and ``gives`` are the declared input and output types. They are
    compared with ``==`` against the neighbouring links when the chain is built.
    """

    index: int
    func: Callable[[In], Out]
    takes: Any
    gives: Any
    name: str = field(default="")

    def __call__(self, value: In) -> Out:
        return self.func(value)

    @property
    def label(self) -> str:
        return self.name or getattr(self.func, "__qualname__", repr(self.func))


class Chain(Generic[In, Out]):
    """
    A fixed-length pipeline of typed links.

    Link ``i`` receives the output of link ``i - 1``; the composed chain takes
    what link 0 takes and gives what the last link gives. Everything about the
    shape of the chain is checked here, so a constructed Chain can only fail
    at run time if one of its steps raises.
    """

    def __init__(self, links: Iterable[Link[Any, Any]], length: int | None = None):
        ordered = sorted(links, key=lambda lk: lk.index)
        _validate(ordered, length)
        self._links: tuple[Link[Any, Any], ...] = tuple(ordered)

    @classmethod
    def homogeneous(
        cls, steps: Sequence[Callable[[T], T]], context: Any
    ) -> Chain[T, T]:
        """Builds a chain where every step takes and gives ``context``."""
        return cls(
            Link(index=i, func=step, takes=context, gives=context)
            for i, step in enumerate(steps)
        )

    @property
    def takes(self) -> Any:
        return self._links[0].takes

    @property
    def gives(self) -> Any:
        return self._links[-1].gives

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self) -> Iterator[Link[Any, Any]]:
        return iter(self._links)

    def __getitem__(self, index: int) -> Link[Any, Any]:
        return self._links[index]

    def link(self, n: int, value: Any) -> Any:
        """Runs the first ``n`` links and returns the output of link ``n - 1``."""
        if not 1 <= n <= len(self._links):
            raise IndexError(f"link count {n} outside 1..{len(self._links)}")

        for lk in self._links[:n]:
            value = lk(value)
        return value

    def cascade(self, value: In) -> Out:
        """Runs every link in ascending index order."""
        return self.link(len(self._links), value)

    __call__ = cascade

    def __repr__(self) -> str:
        stages = _type_name(self.takes) + "".join(
            f" -> {_type_name(lk.gives)}" for lk in self._links
        )
        return f"Chain[{len(self._links)}]({stages})"


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def _validate(links: List[Link[Any, Any]], length: int | None) -> None:
    count = len(links)

    if count == 0:
        raise ChainDefinitionError("A chain needs at least one link.")

    if count > MAX_CHAIN_LENGTH:
        raise ChainDefinitionError(
            f"A chain holds at most {MAX_CHAIN_LENGTH} links, got {count}."
        )

    if length is not None and length != count:
        raise ChainDefinitionError(
            f"Chain declares length {length} but defines {count} link(s)."
        )

    indices = [lk.index for lk in links]
    duplicates = sorted(i for i, seen in Counter(indices).items() if seen > 1)
    if duplicates:
        raise ChainDefinitionError(f"Duplicate link indices: {duplicates}")

    missing = sorted(set(range(count)) - set(indices))
    if missing:
        raise ChainDefinitionError(
            f"Link indices must cover 0..{count - 1}; missing {missing}, "
            f"got {indices}"
        )

    for prev, nxt in zip(links, links[1:]):
        if prev.gives != nxt.takes:
            raise ChainDefinitionError(
                f"Link {prev.index} ({prev.label}) gives {_type_name(prev.gives)} "
                f"but link {nxt.index} ({nxt.label}) takes {_type_name(nxt.takes)}"
            )


@dataclass(frozen=True, slots=True)
class _LinkMarker:
    index: int
    takes: Any
    gives: Any


def link(index: int, *, takes: Any = UNSET, gives: Any = UNSET):
    """
    Marks a function as stage ``index`` of a :class:`Chained` class.

    The function becomes a classmethod taking ``(cls, value)``. Without
    explicit ``takes``/``gives`` the parameter and return annotations are used.
    """

    def decorate(func: Callable[..., Any]) -> classmethod:
        if not isinstance(index, int) or isinstance(index, bool) or index < 0:
            raise ChainDefinitionError(
                f"{func.__qualname__}: link index must be a non-negative int"
            )
        func.__chain_link__ = _LinkMarker(index, takes, gives)  # type: ignore[attr-defined]
        return classmethod(func)

    return decorate


def _declared_types(func: Callable[..., Any], marker: _LinkMarker) -> tuple[Any, Any]:
    takes, gives = marker.takes, marker.gives
    if takes is not UNSET and gives is not UNSET:
        return takes, gives

    try:
        hints = get_type_hints(func)
    except NameError as e:
        raise ChainDefinitionError(
            f"{func.__qualname__}: cannot resolve annotations ({e})"
        ) from e

    params = list(inspect.signature(func).parameters)
    if len(params) != 2:
        raise ChainDefinitionError(
            f"{func.__qualname__}: a link takes exactly one value after cls"
        )

    if takes is UNSET:
        if params[1] not in hints:
            raise ChainDefinitionError(
                f"{func.__qualname__}: input type is neither annotated nor given"
            )
        takes = hints[params[1]]

    if gives is UNSET:
        if "return" not in hints:
            raise ChainDefinitionError(
                f"{func.__qualname__}: output type is neither annotated nor given"
            )
        gives = hints["return"]

    return takes, gives


class Chained:
    """
    Base class for types that carry a chain of ``@link`` stages.

    ``class Pipeline(Chained, length=3)`` collects the marked stages (inherited
    ones included) and builds ``Pipeline.__chain__`` while the class statement
    runs. A bad chain therefore fails at import, never inside ``cascade()``.
    Subclasses that omit ``length`` are treated as abstract and left alone,
    unless an ancestor is already concrete: then the inherited length is
    checked against the subclass's own stages.

    Subclasses can declare their stages some other way by overriding
    ``_chain_links``.
    """

    __chain__: ClassVar[Chain[Any, Any]]

    def __init_subclass__(cls, length: int | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if length is None:
            inherited = getattr(cls, "__chain__", None)
            if inherited is None:
                return
            # Subclass of a concrete chain keeps its length but is rebuilt
            length = len(inherited)

        try:
            cls.__chain__ = Chain(cls._chain_links(), length=length)
        except ChainDefinitionError as e:
            raise ChainDefinitionError(f"{cls.__qualname__}: {e}") from None

        logger.debug("Built %r for %s", cls.__chain__, cls.__qualname__)

    @classmethod
    def _chain_links(cls) -> List[Link[Any, Any]]:
        markers: Dict[str, classmethod] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, classmethod) and hasattr(
                    attr.__func__, "__chain_link__"
                ):
                    markers[name] = attr
                else:
                    markers.pop(name, None)

        links = []
        for name, method in markers.items():
            marker: _LinkMarker = method.__func__.__chain_link__
            takes, gives = _declared_types(method.__func__, marker)
            links.append(
                Link(
                    index=marker.index,
                    func=getattr(cls, name),
                    takes=takes,
                    gives=gives,
                    name=f"{cls.__name__}.{name}",
                )
            )
        return links

    @classmethod
    def is_chain_defined(cls) -> bool:
        return hasattr(cls, "__chain__")

    @classmethod
    def chain_length(cls) -> int:
        return len(cls.__chain__)

    @classmethod
    def cascade(cls, value: Any) -> Any:
        return cls.__chain__.cascade(value)
