"""
chemdown - Markdown renderer with chemical structures

Renders markdown-like text into a tree of typed nodes, with chemical
structures resolved through a batched rendering service.
"""

__version__ = "1.0.0"

from .lib import (
    render,
    Renderer,
    RenderOptions,
    ChemistryBatcher,
    chemistry_hydrate,
    LOG,
    state_connectToLogger,
)

__all__ = [
    "render",
    "Renderer",
    "RenderOptions",
    "ChemistryBatcher",
    "chemistry_hydrate",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
