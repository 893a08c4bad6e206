"""
Command line pipeline tests

Runs the pipeline stages directly on a ProgramState, the way main() chains
them, against temporary input and output directories.
"""

import pytest

import chemdown.__main__ as cli
from chemdown.models import ProgramState, pipeline


class StaticTransport:
    """Resolves every structure to a fixed url"""

    def __init__(self, endpoint=None):
        self.endpoint = endpoint
        self.calls = []

    async def batch_render(self, contents):
        self.calls.append(list(contents))
        return {content: {"url": f"https://img.test/{content}.png"} for content in contents}


@pytest.fixture
def workspace(tmp_path):
    """Input directory holding doc.md, with an empty output directory"""
    inputdir = tmp_path / "in"
    inputdir.mkdir()
    (inputdir / "doc.md").write_text(
        "# Title\n\n| a |\n|---|\n| 1 |\n\nwater $\\chemfig{H-O-H}$\n", encoding="utf-8"
    )
    return inputdir, tmp_path / "out"


def state_make(workspace, **kwargs) -> ProgramState:
    inputdir, outputdir = workspace
    return ProgramState(inputdir=inputdir, outputdir=outputdir, inputFile="doc.md", verbosity=0, **kwargs)


class TestEnvCheck:
    """Test environment validation"""

    def test_missing_input_exits(self, workspace):
        state = state_make(workspace)
        state.inputFile = "missing.md"
        with pytest.raises(SystemExit):
            cli.env_check(state)

    def test_conflicting_chemistry_options_exit(self, workspace):
        state = state_make(workspace, quicklatex=True, chemistryEndpoint="https://svc.test")
        with pytest.raises(SystemExit):
            cli.env_check(state)

    def test_chemistry_implies_math(self, workspace):
        state = cli.env_check(state_make(workspace, chemistry=True))
        assert state.math is True
        assert state.envOK is True
        assert state.htmlOutputdir.is_dir()

    def test_render_options_follow_cli_flags(self, workspace):
        options = state_make(workspace, theme="nord", hostName="a.org", noSanitize=True, chemistry=True).renderOptions_make()
        assert options.theme == "nord"
        assert options.current_host == "a.org"
        assert options.sanitize is False
        assert options.mathExtract_enabled() is True

    def test_namespace_ignores_unknown_arguments(self, workspace):
        from argparse import Namespace

        inputdir, outputdir = workspace
        state = ProgramState.state_createFromNamespace(
            Namespace(inputFile="doc.md", math=True, version=None), inputdir, outputdir
        )
        assert state.math is True
        assert state.inputdir == inputdir

    def test_stage_does_not_mutate_input(self, workspace):
        initial = state_make(workspace)
        cli.env_check(initial)
        assert initial.envOK is False


class TestPipeline:
    """Test the full rendering pipeline"""

    def test_page_is_written(self, workspace):
        state = pipeline(
            state_make(workspace),
            cli.env_check,
            cli.source_render,
            cli.chemistry_hydrate,
            cli.html_write,
            cli.results_report,
        )

        output_file = workspace[1] / "doc.html"
        assert state.writeResult["output_file"] == str(output_file)
        page = output_file.read_text(encoding="utf-8")
        assert page.startswith("<!DOCTYPE html>")
        assert '<article data-slot="markdown"' in page
        assert "<title>doc</title>" in page
        assert state.chemistryResult == {"requested": 0, "resolved": 0}

    def test_math_stays_literal_without_option(self, workspace):
        state = pipeline(state_make(workspace), cli.env_check, cli.source_render, cli.html_write)
        page = (workspace[1] / "doc.html").read_text(encoding="utf-8")
        assert "$\\chemfig{H-O-H}$" in page
        assert state.renderedDocument is not None

    def test_chemistry_is_resolved(self, workspace, monkeypatch):
        monkeypatch.setattr(cli, "HttpTransport", StaticTransport)
        state = pipeline(
            state_make(workspace, chemistry=True),
            cli.env_check,
            cli.source_render,
            cli.chemistry_hydrate,
            cli.html_write,
        )

        assert state.chemistryResult == {"requested": 1, "resolved": 1}
        page = (workspace[1] / "doc.html").read_text(encoding="utf-8")
        assert 'src="https://img.test/H-O-H.png"' in page

    def test_output_subdir(self, workspace):
        state = pipeline(
            state_make(workspace, outputSubdir="site"), cli.env_check, cli.source_render, cli.html_write
        )
        assert (workspace[1] / "site" / "doc.html").exists()
        assert state.writeResult["characters"] > 0

    def test_empty_source(self, workspace):
        (workspace[0] / "doc.md").write_text("   \n", encoding="utf-8")
        state = pipeline(state_make(workspace), cli.env_check, cli.source_render, cli.html_write)
        assert state.renderedDocument is None
        assert (workspace[1] / "doc.html").exists()

    def test_report_without_output_exits(self, workspace):
        with pytest.raises(SystemExit):
            cli.results_report(state_make(workspace))
