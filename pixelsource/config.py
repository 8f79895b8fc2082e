"""
The config module holds the runtime configuration of pixelsource and is based on the Donfig
python library.

Values can be set programmatically, by environment variables or from YAML files in the
standard donfig locations. For example, to tolerate gaps in stacks of single-plane files::

    from pixelsource.config import config

    config.set({"stack.strict": False})

or, equivalently, from the shell::

    export PIXELSOURCE_STACK__STRICT=False

For more information, see the Donfig documentation at https://github.com/pytroll/donfig.
"""

from __future__ import annotations

from donfig import Config as DConfig


class Config(DConfig):  # type: ignore[misc]
    """The Config will collect configuration from config files and environment variables

    Example environment variables:
    Grabs environment variables of the form "PIXELSOURCE_FOO__BAR_BAZ=123" and
    turns these into config variables of the form ``{"foo": {"bar-baz": 123}}``
    """

    def reset(self) -> None:
        self.clear()
        self.refresh()


config = Config(
    "pixelsource",
    defaults=[
        {
            "async": {"concurrency": 10},
            "stack": {"strict": True},
            "stats": {"contrast_cutoff": 5e-4},
            "tiff": {"walk_warning": True},
        }
    ],
)
