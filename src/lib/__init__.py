"""
chemdown - Markdown renderer with chemical structures

Rendering pipeline, collaborators and the structure-rendering batcher.
"""

__version__ = "1.0.0"

from .renderer import render, Renderer, RenderOptions
from .components import ComponentRegistry, REGISTRY
from .batcher import ChemistryBatcher, ChemistryRenderError, HttpTransport, chemistry_hydrate
from .quicklatex import QuickLatexTransport
from .theme import Theme, ThemeError, themes_listAvailable
from .log import LOG, state_connectToLogger

__all__ = [
    "render",
    "Renderer",
    "RenderOptions",
    "ComponentRegistry",
    "REGISTRY",
    "ChemistryBatcher",
    "ChemistryRenderError",
    "HttpTransport",
    "chemistry_hydrate",
    "QuickLatexTransport",
    "Theme",
    "ThemeError",
    "themes_listAvailable",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
