"""Public package surface for listy.

Exports ``main`` for programmatic CLI invocation.
The REPL engine lives in ``listy.repl``; collaborators live alongside it.
"""

from __future__ import annotations

__version__ = "0.3.0"


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main", "__version__"]
