"""Render pipelines turning normalised LaTeX into SVG bytes."""

from __future__ import annotations

from collections.abc import Mapping
import contextlib
import logging
import os
from pathlib import Path
import shlex
import signal
import subprocess
import tempfile
from typing import Protocol, runtime_checkable

from latexsvg.core.exceptions import RenderError


_log = logging.getLogger(__name__)

PLACEHOLDERS = ("{input-path}", "{output-path-or-dir}", "{output-dir}", "{file-path}")


@runtime_checkable
class RenderPipeline(Protocol):
    """Compile one normalised snippet, raising :class:`RenderError` on failure."""

    def render(self, normalized_source: str, fingerprint: str) -> bytes: ...


def expand_command(template: str, values: Mapping[str, str]) -> str:
    """Substitute placeholders in ``template`` with shell-quoted ``values``."""
    command = template
    for placeholder, value in values.items():
        command = command.replace(placeholder, shlex.quote(value))
    return command


def _terminate(process: subprocess.Popen[str]) -> None:
    """Kill ``process`` and everything it spawned."""
    if os.name == "posix":
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(process.pid, signal.SIGKILL)
    with contextlib.suppress(ProcessLookupError):
        process.kill()


class CommandRenderPipeline:
    """Run a user supplied shell command inside an isolated scratch directory."""

    def __init__(
        self,
        command: str,
        *,
        timeout: float = 10.0,
        suffix: str = ".svg",
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.command = command
        self.timeout = timeout
        self.suffix = suffix
        self.env = dict(env) if env is not None else None

    def render(self, normalized_source: str, fingerprint: str) -> bytes:
        if not self.command.strip():
            raise RenderError("No render command configured.")

        with tempfile.TemporaryDirectory(prefix="latexsvg-") as tmpdir:
            workdir = Path(tmpdir)
            input_path = workdir / f"{fingerprint}.tex"
            output_path = workdir / f"{fingerprint}{self.suffix}"
            try:
                input_path.write_text(normalized_source, encoding="utf-8")
            except OSError as exc:
                raise RenderError(f"Unable to prepare render workspace: {exc}") from exc

            command = expand_command(
                self.command,
                {
                    "{input-path}": str(input_path),
                    "{output-path-or-dir}": str(output_path),
                    "{output-dir}": str(workdir),
                    "{file-path}": fingerprint,
                },
            )
            self._run(command, cwd=workdir)

            try:
                data = output_path.read_bytes()
            except FileNotFoundError:
                data = b""
            except OSError as exc:
                raise RenderError(f"Unable to read rendered SVG: {exc}", command=command) from exc
            if not data:
                raise RenderError(
                    f"Render command succeeded but produced no '{output_path.name}'.",
                    exit_code=0,
                    command=command,
                )
            return data

    def _run(self, command: str, *, cwd: Path) -> None:
        env = None
        if self.env is not None:
            env = {**os.environ, **self.env}
        try:
            process = subprocess.Popen(
                command,
                shell=True,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            raise RenderError(f"Failed to execute render command: {exc}", command=command) from exc

        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            _terminate(process)
            stdout, stderr = process.communicate()
            raise RenderError(
                f"Render command timed out after {self.timeout:g}s",
                exit_code=process.returncode,
                stdout=stdout or "",
                stderr=stderr or "",
                timed_out=True,
                command=command,
            ) from exc
        except BaseException:
            _terminate(process)
            process.wait()
            raise

        if process.returncode != 0:
            _log.debug("render command failed: %s", command)
            raise RenderError(
                f"Render command exited with status {process.returncode}",
                exit_code=process.returncode,
                stdout=stdout or "",
                stderr=stderr or "",
                command=command,
            )


__all__ = ["PLACEHOLDERS", "CommandRenderPipeline", "RenderPipeline", "expand_command"]
