"""Wrapper around ``pdflatex``."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import structlog

from dashreport.core.errors import DocumentCompileFailed

logger = structlog.get_logger()

# Lines of compiler output kept in the error when compilation fails
OUTPUT_TAIL_LINES = 20


class LatexCompiler:
    """Compile a LaTeX source file into a PDF beside it."""

    def __init__(self, executable: str = "pdflatex", *, timeout: float = 120.0):
        self.executable = executable
        self.timeout = timeout

    @property
    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def compile(self, tex_path: Path) -> Path:
        """Run the compiler in the source's directory and return the PDF path.

        ``images/`` and any other relative references resolve against that
        directory.
        """
        tex_path = Path(tex_path)
        workdir = tex_path.parent
        cmd = [
            self.executable,
            "-halt-on-error",
            "-interaction=nonstopmode",
            tex_path.name,
        ]
        try:
            result = subprocess.run(
                cmd,
                cwd=workdir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise DocumentCompileFailed(
                f"{self.executable} not found; install a TeX distribution",
                {"executable": self.executable},
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise DocumentCompileFailed(
                f"{self.executable} timed out after {self.timeout}s",
                {"source": str(tex_path)},
            ) from exc

        if result.returncode != 0:
            tail = "\n".join(result.stdout.splitlines()[-OUTPUT_TAIL_LINES:])
            logger.error(
                "latex_compile_failed",
                source=str(tex_path),
                returncode=result.returncode,
            )
            raise DocumentCompileFailed(
                f"{self.executable} exited with status {result.returncode}:\n{tail}",
                {"source": str(tex_path), "returncode": result.returncode},
            )

        pdf_path = tex_path.with_suffix(".pdf")
        logger.info("latex_compiled", source=str(tex_path), pdf=str(pdf_path))
        return pdf_path
