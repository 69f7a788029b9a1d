"""Component registry: the tag-to-descriptor map used during resolution.

The registry is an ordinary value handed to the engine. Nothing registers
itself globally, so independent graphs and tests can each use their own.

Example:
    registry = ComponentRegistry()

    @registry.component("Markdown", attribute_schema=BaseAttributes)
    def markdown(ctx):
        return {"html": render(ctx.attributes["content"])}

    registry.register(ComponentSpec(tag="Vertical"))
"""

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from .engine import InstanceContext

logger = logging.getLogger(__name__)

Handler = Callable[["InstanceContext"], Any]
ChildScopeStrategy = Callable[["InstanceContext"], list[Any]]


@dataclass(frozen=True)
class ComponentSpec:
    """Descriptor for one component tag.

    Attributes:
        tag: Tag name as authored (``ChoiceInput``)
        handler: Setup callable; receives an InstanceContext and returns the
            instance value (or an awaitable of it). None means the component
            has no setup and its value is None.
        attribute_schema: Pydantic model validating the node's attributes
        requires_parent: Role an ancestor must carry (e.g. ``"grader"``),
            unless the node names one explicitly with a ``target`` attribute
        roles: Roles this component fulfils for its descendants
        child_scopes: For repeatable containers, returns one scope segment
            per rendered copy of the kids
        fields: Initial reactive state written for each new instance
    """

    tag: str
    handler: Handler | None = None
    attribute_schema: type[BaseModel] | None = None
    requires_parent: str | None = None
    roles: frozenset[str] = frozenset()
    child_scopes: ChildScopeStrategy | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)


class ComponentRegistry:
    """Map from tag name to ComponentSpec."""

    def __init__(self, specs: list[ComponentSpec] | None = None):
        self._specs: dict[str, ComponentSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ComponentSpec) -> ComponentSpec:
        """Add a component.

        Raises:
            ValueError: If a different spec is already registered for the tag
        """
        existing = self._specs.get(spec.tag)
        if existing is not None and existing != spec:
            raise ValueError(f"Component {spec.tag!r} is already registered")
        self._specs[spec.tag] = spec
        logger.debug("Registered component %s", spec.tag)
        return spec

    def component(self, tag: str, **options: Any) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register` for handler functions."""

        def decorator(handler: Handler) -> Handler:
            self.register(ComponentSpec(tag=tag, handler=handler, **options))
            return handler

        return decorator

    def lookup(self, tag: str) -> ComponentSpec | None:
        return self._specs.get(tag)

    def tags(self) -> list[str]:
        return sorted(self._specs)

    def __contains__(self, tag: object) -> bool:
        return tag in self._specs

    def __iter__(self) -> Iterator[ComponentSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


def repeat_scopes(count_attribute: str = "count") -> ChildScopeStrategy:
    """Child scope strategy rendering the kids ``count`` times.

    Each copy gets the segment ``(key, index)``, so a container ``list``
    under the root scope produces scopes ``list:0``, ``list:1``...
    """

    def strategy(ctx: "InstanceContext") -> list[Any]:
        raw = ctx.attributes.get(count_attribute, 0)
        try:
            count = int(raw)
        except (TypeError, ValueError):
            raise ValueError(
                f"{ctx.node.tag} {count_attribute}={raw!r} is not an integer"
            ) from None
        return [(ctx.node.key, i) for i in range(max(count, 0))]

    return strategy
