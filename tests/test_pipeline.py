from __future__ import annotations

import os
from pathlib import Path
import shlex
import sys
import time

import pytest

from latexsvg.adapters.pipeline import CommandRenderPipeline, expand_command
from latexsvg.core.exceptions import RenderError
from latexsvg.core.fingerprint import Fingerprinter


pytestmark = pytest.mark.skipif(os.name != "posix", reason="render commands run through sh")

PYTHON = shlex.quote(sys.executable)
FP = "c" * 64


def _python(code: str) -> str:
    return f"{PYTHON} -c {shlex.quote(code)}"


def test_expand_command_quotes_values() -> None:
    command = expand_command(
        "tool {input-path} -o {output-path-or-dir}",
        {"{input-path}": "/tmp/with space/in.tex", "{output-path-or-dir}": "/tmp/out.svg"},
    )

    assert command == "tool '/tmp/with space/in.tex' -o /tmp/out.svg"


def test_render_runs_command_on_normalized_source(render_command: str) -> None:
    normalized = Fingerprinter().normalize("$x$")
    pipeline = CommandRenderPipeline(render_command, timeout=30)

    data = pipeline.render(normalized, FP)

    assert data.startswith(b"<?xml")
    assert f"<desc>{len(normalized)}</desc>".encode() in data


def test_file_path_placeholder_is_relative_to_workdir() -> None:
    code = (
        "import pathlib, sys; "
        "name = sys.argv[1]; "
        "text = pathlib.Path(name + '.tex').read_text(); "
        "pathlib.Path(name + '.svg').write_text('<svg>' + str(len(text)) + '</svg>')"
    )
    pipeline = CommandRenderPipeline(_python(code) + " {file-path}", timeout=30)

    assert pipeline.render("abc", FP) == b"<svg>3</svg>"


def test_output_dir_placeholder(tmp_path: Path) -> None:
    code = (
        "import pathlib, sys; "
        "pathlib.Path(sys.argv[1], sys.argv[2] + '.svg').write_text('<svg/>')"
    )
    pipeline = CommandRenderPipeline(_python(code) + " {output-dir} {file-path}", timeout=30)

    assert pipeline.render("abc", FP) == b"<svg/>"


def test_failing_command_reports_exit_code_and_stderr(render_command: str) -> None:
    pipeline = CommandRenderPipeline(render_command, timeout=30)

    with pytest.raises(RenderError) as excinfo:
        pipeline.render("\\fail", FP)

    error = excinfo.value
    assert error.exit_code == 1
    assert not error.timed_out
    assert "Undefined control sequence" in error.stderr
    assert "Undefined control sequence" in error.details()


def test_missing_output_is_an_error() -> None:
    pipeline = CommandRenderPipeline(_python("pass"), timeout=30)

    with pytest.raises(RenderError) as excinfo:
        pipeline.render("abc", FP)

    assert excinfo.value.exit_code == 0
    assert "produced no" in str(excinfo.value)


def test_timeout_kills_the_process_group() -> None:
    pipeline = CommandRenderPipeline(
        _python("import time; time.sleep(30)") + " && echo done", timeout=0.5
    )

    started = time.monotonic()
    with pytest.raises(RenderError) as excinfo:
        pipeline.render("abc", FP)

    assert excinfo.value.timed_out
    assert time.monotonic() - started < 10


def test_empty_command_is_rejected() -> None:
    with pytest.raises(RenderError):
        CommandRenderPipeline("   ").render("abc", FP)


def test_scratch_directory_is_removed(tmp_path: Path) -> None:
    record = tmp_path / "workdir.txt"
    code = f"import os, pathlib; pathlib.Path({str(record)!r}).write_text(os.getcwd())"
    pipeline = CommandRenderPipeline(_python(code), timeout=30)

    with pytest.raises(RenderError):
        pipeline.render("abc", FP)

    assert not Path(record.read_text()).exists()
