#!/usr/bin/env python3
"""
chemdown - Markdown renderer with chemical structures

Renders markdown-like documents (tables, fenced code, LaTeX math, nested
blockquotes, footnotes) to standalone HTML, resolving \\chemfig{...}
structures to images through a batched structure-rendering service.

As an aside, this codebase leverages the ChRIS "plugin" concept/pattern as
general purpose python app development framework.

Philosophy:
    - Text-first: Source files remain human-readable without rendering
    - Degrade, never fail: malformed input renders as literal text
    - Single-file workflow: One .md source → one standalone HTML output
    - Safe by default: literal markup is sanitized unless asked otherwise

Usage:
    chemdown inputdir/ outputdir/ --inputFile notes.md

    The rendered document will be written to outputdir/ as notes.html.

Examples:
    # Basic rendering
    chemdown . output/ --inputFile notes.md

    # Math spans and chemical structures through QuickLaTeX
    chemdown . output/ --inputFile notes.md --math --chemistry --quicklatex

    # Trusted input, own rendering service, verbose output
    chemdown . output/ --inputFile notes.md --noSanitize --chemistry \\
        --chemistryEndpoint https://example.org/api/render-chemistry -vv
"""

import asyncio
import html
import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter

from chris_plugin import chris_plugin
from .config import appsettings
from .lib import (
    ChemistryBatcher,
    HttpTransport,
    QuickLatexTransport,
    render,
    themes_listAvailable,
    __version__,
    LOG,
    state_connectToLogger,
)
from .lib.batcher import chemistry_hydrate as document_hydrate
from .models import ProgramState, pipeline


DISPLAY_TITLE = r"""
        __                        __
   ____/ /_  ___  ____ ___  ____/ /___ _      ______
  / ___/ __ \/ _ \/ __ `__ \/ __  / __ \ | /| / / __ \
 / /__/ / / /  __/ / / / / / /_/ / /_/ / |/ |/ / / / /
 \___/_/ /_/\___/_/ /_/ /_/\__,_/\____/|__/|__/_/ /_/

  Markdown renderer with chemical structures
"""

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta name="generator" content="chemdown {version}">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""

# Define CLI arguments
parser = ArgumentParser(
    description="chemdown - Markdown renderer with chemical structures",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--inputFile", required=True, type=str, help="Input markdown file (relative to inputdir)"
)

parser.add_argument(
    "--theme",
    default=appsettings.default_theme,
    type=str,
    help=f"Code highlight theme ({', '.join(themes_listAvailable())})",
)

parser.add_argument(
    "--hostName",
    default="",
    type=str,
    help="Host the page is served from; links to other hosts open in a new tab",
)

parser.add_argument(
    "--noSanitize",
    action="store_true",
    default=False,
    help="Trust the input and skip HTML sanitization",
)

parser.add_argument(
    "--math",
    action="store_true",
    default=False,
    help="Extract LaTeX math spans ($..$, $$..$$, \\(..\\), \\[..\\])",
)

parser.add_argument(
    "--chemistry",
    action="store_true",
    default=False,
    help="Resolve \\chemfig{...} math to structure images (implies --math)",
)

parser.add_argument(
    "--chemistryEndpoint",
    default=None,
    type=str,
    help="Batched structure-rendering service (defaults to CHEMDOWN_CHEMISTRY_ENDPOINT)",
)

parser.add_argument(
    "--quicklatex",
    action="store_true",
    default=False,
    help="Render structures directly against QuickLaTeX instead of a rendering service",
)

parser.add_argument(
    "--outputSubdir",
    default=".",
    type=str,
    help="Subdirectory within outputdir for the rendered page",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv, -vvv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate environment and resolve all file paths.

    Verifies that the input file exists and the chemistry options are
    consistent, then creates the output directory.

    Args:
        inputstate: Initial program state with CLI options

    Returns:
        ProgramState with added fields:
            - inputSourceFile: Resolved path to the markdown input
            - htmlOutputdir: Created output directory path
            - envOK: True if environment is valid

    Exits:
        1 if the input file is missing or options conflict
    """

    state = inputstate.copy()

    if state.verbosity >= 2:
        LOG(DISPLAY_TITLE, level=2)

    LOG("Checking environment...", level=2)

    input_file = state.inputdir / state.inputFile

    if not input_file.exists():
        print(f"Error: Input file not found: {input_file}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    state.inputSourceFile = input_file
    LOG(f"Input file: {input_file}", level=2)

    if state.quicklatex and state.chemistryEndpoint:
        print("Error: --quicklatex and --chemistryEndpoint are mutually exclusive", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    if state.chemistry:
        state.math = True

    state.htmlOutputdir = state.outputdir / state.outputSubdir
    state.htmlOutputdir.mkdir(parents=True, exist_ok=True)
    LOG(f"Output directory: {state.htmlOutputdir}", level=2)

    state.envOK = True
    return state


def source_render(inputstate: ProgramState) -> ProgramState:
    """
    Read the markdown source and render it into a document tree.

    Args:
        inputstate: Program state with inputSourceFile path set

    Returns:
        ProgramState with added field:
            - renderedDocument: Document tree (None for an empty source)

    Exits:
        1 if the file cannot be read
    """

    state = inputstate.copy()

    LOG("Reading source file...", level=1)

    try:
        source = state.inputSourceFile.read_text(encoding="utf-8")
        LOG(f"Read {len(source)} characters from {state.inputSourceFile.name}", level=2)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading input file: {e}", file=sys.stderr)
        sys.exit(1)

    LOG("Rendering source...", level=1)
    state.renderedDocument = render(source, state.renderOptions_make())

    if state.renderedDocument is None:
        LOG("Source is empty, nothing rendered", level=1)
    else:
        LOG(f"Rendered {len(state.renderedDocument.children)} top-level nodes", level=2)
    return state


def chemistry_hydrate(inputstate: ProgramState) -> ProgramState:
    """
    Resolve chemical structures of the document to image urls.

    Skipped unless --chemistry is given. Structures that fail to render
    keep their error message and show it in the page.

    Args:
        inputstate: Program state with renderedDocument

    Returns:
        ProgramState with added field:
            - chemistryResult: Dict with requested and resolved counts
    """

    state = inputstate.copy()

    if not state.chemistry or state.renderedDocument is None:
        state.chemistryResult = {"requested": 0, "resolved": 0}
        return state

    from .models.tree import ChemistryNode

    requested = sum(isinstance(node, ChemistryNode) for node in state.renderedDocument.walk())
    LOG(f"Resolving {requested} chemical structure(s)...", level=1)

    if state.quicklatex:
        transport = QuickLatexTransport()
    else:
        transport = HttpTransport(state.chemistryEndpoint or appsettings.chemistry_endpoint)

    batcher = ChemistryBatcher(transport)
    resolved = asyncio.run(document_hydrate(state.renderedDocument, batcher))
    state.chemistryResult = {"requested": requested, "resolved": resolved}

    if resolved < requested:
        LOG(f"{requested - resolved} structure(s) could not be rendered", level=1)
    return state


def html_write(inputstate: ProgramState) -> ProgramState:
    """
    Write the rendered document as a standalone HTML page.

    Args:
        inputstate: Program state with renderedDocument

    Returns:
        ProgramState with added field:
            - writeResult: Dict containing:
                - output_file: str (path to the generated page)
                - characters: int (size of the page)

    Exits:
        1 if the page cannot be written
    """

    state = inputstate.copy()

    body = state.renderedDocument.html_render() if state.renderedDocument else ""
    page = PAGE_TEMPLATE.format(
        version=__version__,
        title=html.escape(state.inputSourceFile.stem),
        body=body,
    )

    output_file = state.htmlOutputdir / f"{state.inputSourceFile.stem}.html"
    try:
        output_file.write_text(page, encoding="utf-8")
    except OSError as e:
        print(f"Error writing output file: {e}", file=sys.stderr)
        sys.exit(1)

    state.writeResult = {"output_file": str(output_file), "characters": len(page)}
    LOG(f"Wrote {len(page)} characters to {output_file}", level=2)
    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Display rendering results to user.

    Args:
        inputstate: Program state with writeResult populated

    Returns:
        ProgramState unchanged (terminal pipeline stage)

    Exits:
        1 if writeResult is None
    """
    state: ProgramState = inputstate.copy()
    if not state.writeResult:
        print("Error: Rendering failed", file=sys.stderr)
        sys.exit(1)

    if state.verbosity >= 1:
        LOG("\n✓ Rendering successful!", level=1)
        LOG(f"  Output: {state.writeResult['output_file']}", level=1)
        if state.chemistryResult and state.chemistryResult["requested"]:
            LOG(
                f"  Structures: {state.chemistryResult['resolved']}"
                f"/{state.chemistryResult['requested']}",
                level=1,
            )
    return state


@chris_plugin(
    parser=parser,
    title="chemdown - Markdown renderer with chemical structures",
    category="Visualization",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - render a markdown source to a standalone HTML page.

    Orchestrates the full rendering pipeline:
        1. env_check: Validate paths and options
        2. source_render: Read and render the source to a document tree
        3. chemistry_hydrate: Resolve chemical structures (optional)
        4. html_write: Write the page
        5. results_report: Display results to user

    Args:
        options: CLI arguments from argparse
        inputdir: Directory containing markdown sources
        outputdir: Directory where the rendered page will be written

    Note:
        This function is wrapped by @chris_plugin which handles CLI
        argument parsing and invokes this function with parsed values.
    """

    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, env_check, source_render, chemistry_hydrate, html_write, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
