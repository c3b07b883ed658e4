"""Analyzers for language lock files, Java archives and Go binaries."""

from __future__ import annotations

import io
import posixpath
import stat
from collections.abc import Callable, Iterable, Mapping
from typing import Any, BinaryIO

from layerscan import library
from layerscan.analyzer import AnalysisResult, AnalysisTarget
from layerscan.types import AnalyzerType, Library

JarParser = Callable[[BinaryIO, str], Iterable[Library] | None]

_LOCKFILES: dict[AnalyzerType, str] = {
    AnalyzerType.BUNDLER: "Gemfile.lock",
    AnalyzerType.CARGO: "Cargo.lock",
    AnalyzerType.COMPOSER: "composer.lock",
    AnalyzerType.GO_MOD: "go.sum",
    AnalyzerType.NPM: "package-lock.json",
    AnalyzerType.NUGET: "packages.lock.json",
    AnalyzerType.PIPENV: "Pipfile.lock",
    AnalyzerType.POETRY: "poetry.lock",
    AnalyzerType.YARN: "yarn.lock",
}

_JAR_EXTS = (".jar", ".war", ".ear")


def _ext(file_path: str) -> str:
    base = file_path.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


class LockfileAnalyzer:
    """Parses lock files selected by their base name."""

    version = 1

    def __init__(
        self, analyzer_type: str, required_files: Iterable[str], parse: library.Parser
    ) -> None:
        self.analyzer_type = AnalyzerType(analyzer_type)
        self.required_files = tuple(required_files)
        self.parse = parse

    def analyze(self, target: AnalysisTarget) -> AnalysisResult | None:
        try:
            return library.analyze(
                str(self.analyzer_type), target.file_path, target.content, self.parse
            )
        except ValueError as err:
            name = posixpath.basename(target.file_path)
            raise ValueError(f"unable to parse {name}: {err}") from err

    def required(self, file_path: str, info: Any = None) -> bool:
        return posixpath.basename(file_path) in self.required_files


class JarAnalyzer:
    """Parses jar, war and ear archives.

    The parser receives the archive stream and its path.
    """

    analyzer_type = AnalyzerType.JAR
    version = 1

    def __init__(self, parse: JarParser) -> None:
        self.parse = parse

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            libs = list(self.parse(io.BytesIO(target.content), target.file_path) or ())
        except Exception as err:
            raise ValueError(f"jar/war/ear parse error: {err}") from err
        return library.to_analysis_result(str(self.analyzer_type), target.file_path, libs)

    def required(self, file_path: str, info: Any = None) -> bool:
        return _ext(file_path).lower() in _JAR_EXTS


class GoBinaryAnalyzer:
    """Reads module information from executable files."""

    analyzer_type = AnalyzerType.GO_BINARY
    version = 1

    def __init__(self, parse: library.Parser) -> None:
        self.parse = parse

    def analyze(self, target: AnalysisTarget) -> AnalysisResult | None:
        try:
            return library.analyze(
                str(self.analyzer_type), target.file_path, target.content, self.parse
            )
        except ValueError as err:
            raise ValueError(f"unable to parse {target.file_path}: {err}") from err

    def required(self, file_path: str, info: Any = None) -> bool:
        if info is None:
            return False
        return bool(stat.S_IMODE(info.st_mode) & 0o111)


def library_analyzers(parsers: Mapping[str, Callable[..., Any]]) -> list[Any]:
    """Build one analyzer per library type that a parser is given for.

    Raises ValueError for a type that is not a library analyzer type.
    """
    analyzers: list[Any] = []
    for type_name, parse in parsers.items():
        try:
            analyzer_type = AnalyzerType(type_name)
        except ValueError as err:
            raise ValueError(f"unknown library analyzer type: {type_name}") from err
        if analyzer_type is AnalyzerType.JAR:
            analyzers.append(JarAnalyzer(parse))
        elif analyzer_type is AnalyzerType.GO_BINARY:
            analyzers.append(GoBinaryAnalyzer(parse))
        elif analyzer_type in _LOCKFILES:
            analyzers.append(LockfileAnalyzer(analyzer_type, (_LOCKFILES[analyzer_type],), parse))
        else:
            raise ValueError(f"unknown library analyzer type: {type_name}")
    return analyzers