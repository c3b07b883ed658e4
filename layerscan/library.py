"""Helpers shared by the language lock-file analyzers."""

from __future__ import annotations

import io
from collections.abc import Callable, Iterable
from typing import BinaryIO

from layerscan.analyzer import AnalysisResult
from layerscan.types import Application, Library, LibraryInfo

Parser = Callable[[BinaryIO], Iterable[Library] | None]


def analyze(
    analyzer_type: str, file_path: str, content: bytes, parse: Parser
) -> AnalysisResult | None:
    """Parse ``content`` with ``parse``; None when no libraries are found.

    Raises ValueError when the parser fails.
    """
    try:
        libs = list(parse(io.BytesIO(content)) or ())
    except Exception as err:
        raise ValueError(f"failed to parse {file_path}: {err}") from err
    if not libs:
        return None
    return to_analysis_result(analyzer_type, file_path, libs)


def to_analysis_result(
    analyzer_type: str, file_path: str, libs: Iterable[Library]
) -> AnalysisResult:
    """Wrap libraries as a single application in an analysis result."""
    app = Application(
        type=str(analyzer_type),
        file_path=file_path,
        libraries=[LibraryInfo(library=lib) for lib in libs],
    )
    return AnalysisResult(applications=[app])