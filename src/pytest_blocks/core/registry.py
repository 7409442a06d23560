"""Block registry.

Maps block type identifiers to block descriptors. Registration overwrites
by type (the last registration wins), which lets plugins override builtin
blocks. A registry may be layered: `child()` returns a registry that sees
every block of its parent but keeps its own registrations local, so a test
file can expose its procedures as blocks without touching the shared
registry of the environment.
"""

from typing import TYPE_CHECKING

from pytest_blocks.errors import UnknownBlockType

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

if TYPE_CHECKING:
    from pytest_blocks.schema import BlockDescriptor


class BlockRegistry:
    """Mapping of block types to descriptors."""

    def __init__(self, parent: 'BlockRegistry | None' = None) -> None:
        """Initialize an empty registry.

        Args:
            parent: Registry consulted for types not registered locally.
        """
        self.parent = parent
        self._blocks: dict[str, BlockDescriptor] = {}

    def register(self, descriptor: 'BlockDescriptor') -> None:
        """Insert or overwrite a block descriptor by its type."""
        self._blocks[descriptor.type] = descriptor

    def register_many(self, descriptors: 'Iterable[BlockDescriptor]') -> None:
        """Register several descriptors in order."""
        for descriptor in descriptors:
            self.register(descriptor)

    def unregister(self, block_type: str) -> None:
        """Remove a local registration, if present."""
        self._blocks.pop(block_type, None)

    def lookup(self, block_type: str) -> 'BlockDescriptor | None':
        """Return the descriptor of a block type, or `None`."""
        if (descriptor := self._blocks.get(block_type)) is not None:
            return descriptor

        if self.parent is not None:
            return self.parent.lookup(block_type)

        return None

    def require(self, block_type: str) -> 'BlockDescriptor':
        """Return the descriptor of a block type.

        Raises:
            UnknownBlockType: If the type is not registered.
        """
        if (descriptor := self.lookup(block_type)) is None:
            raise UnknownBlockType(block_type)

        return descriptor

    def all(self) -> list['BlockDescriptor']:
        """Return all visible descriptors, local registrations first."""
        return list(self._visible().values())

    def all_by_category(self, category: str) -> list['BlockDescriptor']:
        """Return visible descriptors of a category."""
        return [
            descriptor
            for descriptor in self._visible().values()
            if descriptor.category == category
        ]

    def categories(self) -> list[str]:
        """Return the sorted categories of visible descriptors."""
        return sorted({descriptor.category for descriptor in self._visible().values()})

    def child(self) -> 'BlockRegistry':
        """Return an overlay registry on top of this one."""
        return BlockRegistry(parent=self)

    def _visible(self) -> dict[str, 'BlockDescriptor']:
        """Merge local registrations over the parent's."""
        blocks = dict(self._blocks)
        if self.parent is not None:
            for block_type, descriptor in self.parent._visible().items():  # noqa: SLF001
                blocks.setdefault(block_type, descriptor)

        return blocks

    def __contains__(self, block_type: object) -> bool:
        return isinstance(block_type, str) and self.lookup(block_type) is not None

    def __iter__(self) -> 'Iterator[str]':
        return iter(self._visible())

    def __len__(self) -> int:
        return len(self._visible())
