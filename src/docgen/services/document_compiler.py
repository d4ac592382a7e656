# src/docgen/services/document_compiler.py

"""
Wrapper around the pandoc executable.

Each call runs in its own process with its own temporary directory, so
concurrent jobs never share files. A non-zero exit is reported with the
compiler's stderr verbatim.
"""

import logging
import subprocess
import tempfile
from pathlib import Path

from opentelemetry import trace

from docgen.errors import CompilerError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_STYLESHEET = (
    "https://cdnjs.cloudflare.com/ajax/libs/github-markdown-css/5.1.0/github-markdown.min.css"
)

_LATEX_SPECIALS = {
    "\\": r"\textbackslash{}",
    "{": r"\{",
    "}": r"\}",
    "$": r"\$",
    "&": r"\&",
    "#": r"\#",
    "^": r"\textasciicircum{}",
    "_": r"\_",
    "%": r"\%",
    "~": r"\textasciitilde{}",
}


def latex_escape(value: str) -> str:
    return "".join(_LATEX_SPECIALS.get(ch, ch) for ch in value)


def classification_header(marking: str) -> str:
    escaped = latex_escape(marking)
    return (
        "\\usepackage{fancyhdr}\n"
        "\\pagestyle{fancy}\n"
        f"\\fancyhead[C]{{{escaped}}}\n"
        f"\\fancyfoot[C]{{{escaped}\\\\\\thepage}}"
    )


class PandocCompiler:

    def __init__(
        self,
        executable: str = "pandoc",
        *,
        pdf_engine: str = "xelatex",
        timeout_seconds: int = 120,
        stylesheet: str = DEFAULT_STYLESHEET,
    ):
        self.executable = executable
        self.pdf_engine = pdf_engine
        self.timeout_seconds = timeout_seconds
        self.stylesheet = stylesheet

    def to_html(self, markdown: str, variables: dict[str, str]) -> bytes:
        args = [
            "--from=markdown+yaml_metadata_block",
            "--to=html5",
            "--standalone",
            "--embed-resources",
            "--toc",
            "--toc-depth=3",
            f"--css={self.stylesheet}",
        ]
        args += self._variable_args(variables)
        return self._run(args, markdown, "output.html")

    def to_pdf(self, markdown: str, variables: dict[str, str]) -> bytes:
        args = [
            "--from=markdown+yaml_metadata_block+hard_line_breaks",
            "--to=pdf",
            f"--pdf-engine={self.pdf_engine}",
            "--toc",
            "--toc-depth=3",
            "--number-sections",
            "-V", "geometry:margin=1in",
            "-V", "fontsize=11pt",
            "-V", "documentclass=article",
        ]
        args += self._variable_args(variables)

        classification = variables.get("classification")
        if classification:
            args += ["-V", f"header-includes={classification_header(classification)}"]

        return self._run(args, markdown, "output.pdf")

    @staticmethod
    def _variable_args(variables: dict[str, str]) -> list[str]:
        args: list[str] = []
        for name in ("title", "author", "date"):
            value = variables.get(name)
            if value:
                args += ["-V", f"{name}={value}"]
        return args

    def _run(self, args: list[str], markdown: str, output_name: str) -> bytes:
        with tracer.start_as_current_span("compiler.pandoc") as span:
            span.set_attribute("compiler.output", output_name)
            span.set_attribute("markup.length", len(markdown))

            with tempfile.TemporaryDirectory(prefix="docgen-") as workdir:
                source = Path(workdir) / "input.md"
                target = Path(workdir) / output_name
                source.write_text(markdown, encoding="utf-8")

                cmd = [self.executable, str(source), "-o", str(target), *args]
                logger.debug("Running compiler: %s", cmd)

                try:
                    proc = subprocess.run(
                        cmd,
                        capture_output=True,
                        timeout=self.timeout_seconds,
                        cwd=workdir,
                        check=False,
                    )
                except FileNotFoundError as exc:
                    raise CompilerError(f"Format compiler not found: {self.executable}") from exc
                except subprocess.TimeoutExpired as exc:
                    raise CompilerError(
                        f"Format compiler timed out after {self.timeout_seconds}s"
                    ) from exc

                if proc.returncode != 0:
                    stderr = proc.stderr.decode("utf-8", errors="replace")
                    span.set_attribute("compiler.returncode", proc.returncode)
                    raise CompilerError(
                        f"pandoc exited with status {proc.returncode}: {stderr}",
                        stderr=stderr,
                        returncode=proc.returncode,
                    )

                output = target.read_bytes()

        logger.info("Compiled %s (%d bytes)", output_name, len(output))
        return output
