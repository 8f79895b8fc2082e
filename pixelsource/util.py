from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from asciitree import BoxStyle, LeftAligned
from asciitree.traversal import Traversal

if TYPE_CHECKING:
    from pixelsource.loaders import LoadedImage


class TreeNode:
    def __init__(self, obj: Any, name: str | None = None) -> None:
        self.obj = obj
        self.name = name

    def get_children(self) -> list[TreeNode]:
        if isinstance(self.obj, Sequence):
            return [TreeNode(o) for o in self.obj]
        if hasattr(self.obj, "data"):
            return [TreeNode(source, name=str(level)) for level, source in enumerate(self.obj.data)]
        return []

    def get_text(self) -> str:
        if isinstance(self.obj, Sequence):
            return "/"
        if hasattr(self.obj, "data"):
            return self.obj.name
        return "{} {} {} tile={}".format(
            self.name, tuple(self.obj.shape), self.obj.dtype, self.obj.tile_size
        )


class TreeTraversal(Traversal):
    def get_children(self, node: TreeNode) -> list[TreeNode]:
        return node.get_children()

    def get_root(self, tree: TreeNode) -> TreeNode:
        return tree

    def get_text(self, node: TreeNode) -> str:
        return node.get_text()


class TreeViewer:
    """Render loaded images and their pyramid levels as a text tree."""

    def __init__(self, images: LoadedImage | Sequence[LoadedImage]) -> None:
        self.images = images

        self.text_kwargs = dict(horiz_len=2, label_space=1, indent=1)

        self.bytes_kwargs = dict(
            UP_AND_RIGHT="+", HORIZONTAL="-", VERTICAL="|", VERTICAL_AND_RIGHT="+"
        )

        self.unicode_kwargs = dict(
            UP_AND_RIGHT="└",
            HORIZONTAL="─",
            VERTICAL="│",
            VERTICAL_AND_RIGHT="├",
        )

    def _render(self, gfx: dict[str, str]) -> str:
        drawer = LeftAligned(traverse=TreeTraversal(), draw=BoxStyle(gfx=gfx, **self.text_kwargs))
        return drawer(TreeNode(self.images))

    def __bytes__(self) -> bytes:
        return self._render(self.bytes_kwargs).encode()

    def __str__(self) -> str:
        return self._render(self.unicode_kwargs)

    def __repr__(self) -> str:
        return str(self)
