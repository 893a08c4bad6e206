"""
Render job state for the chemdown command line

One ProgramState travels through the stages of a render job. Every stage
receives the state produced by the previous one, copies it and fills in
the fields it is responsible for:

    env_check          → inputSourceFile, htmlOutputdir, envOK
    source_render      → renderedDocument
    chemistry_hydrate  → chemistryResult
    html_write         → writeResult
    results_report     (reads only)
"""

from pathlib import Path
from argparse import Namespace
from typing import Any, Optional, Type, TypeVar, Dict, Callable
from dataclasses import dataclass, field, fields
from functools import reduce


PS = TypeVar("PS", bound="ProgramState")
Stage = Callable[["ProgramState"], "ProgramState"]


@dataclass
class ProgramState:
    """
    State of one render job.

    Options (from the command line):
        inputdir, outputdir: Plugin input and output directories
        inputFile: Markdown source, relative to inputdir
        outputSubdir: Where the page goes, relative to outputdir
        verbosity: LOG() threshold
        theme: Code highlight theme
        hostName: Host the page is served from; links elsewhere open in a new tab
        noSanitize: Trust the source and keep its raw markup
        math: Extract LaTeX math spans
        chemistry: Resolve \\chemfig structures (forces math on)
        chemistryEndpoint: Batched structure-rendering service
        quicklatex: Use QuickLaTeX instead of a rendering service

    Results (filled by the stages):
        envOK, inputSourceFile, htmlOutputdir, renderedDocument,
        chemistryResult ({"requested", "resolved"}),
        writeResult ({"output_file", "characters"})
    """

    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    inputFile: str = field(default="")
    outputSubdir: str = field(default=".")
    verbosity: int = field(default=1)
    theme: Optional[str] = field(default=None)
    hostName: str = field(default="")
    noSanitize: bool = field(default=False)
    math: bool = field(default=False)
    chemistry: bool = field(default=False)
    chemistryEndpoint: Optional[str] = field(default=None)
    quicklatex: bool = field(default=False)

    envOK: bool = field(default=False)
    inputSourceFile: Path = field(default=Path("/"))
    htmlOutputdir: Path = field(default=Path("/"))
    renderedDocument: Optional[Any] = field(default=None)  # Document
    chemistryResult: Optional[Dict] = field(default=None)
    writeResult: Optional[Dict] = field(default=None)

    @classmethod
    def state_createFromNamespace(
        cls: Type[PS], options: Namespace, inputdir: Path, outputdir: Path
    ) -> PS:
        """
        Build the initial state of a job from parsed arguments.

        Arguments that are not state fields (e.g. --version) are ignored.
        """
        known = {f.name for f in fields(cls)}
        carried = {k: v for k, v in vars(options).items() if k in known}
        return cls(**carried, inputdir=inputdir, outputdir=outputdir)

    def renderOptions_make(self) -> Any:
        """RenderOptions matching the job's command line options"""
        from ..lib.renderer import RenderOptions

        return RenderOptions(
            theme=self.theme,
            math_extract=self.math or self.chemistry,
            current_host=self.hostName,
            sanitize=not self.noSanitize,
        )

    def copy(self: PS) -> PS:
        """Shallow copy, so a stage never changes the state it was given"""
        return type(self)(**self.__dict__)


def pipeline(initial_state: ProgramState, *stages: Stage) -> ProgramState:
    """
    Run ``stages`` left to right, each on the state returned by the last.

    Example:
        pipeline(state, env_check, source_render, html_write)
        # same as html_write(source_render(env_check(state)))
    """
    return reduce(lambda state, stage: stage(state), stages, initial_state)
