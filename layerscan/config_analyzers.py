"""Analyzers that parse structured configuration files."""

from __future__ import annotations

import json
import posixpath
import re
import tomllib
from typing import Any

import yaml

from layerscan.analyzer import AnalysisResult, AnalysisTarget
from layerscan.types import AnalyzerType, Config

FilePattern = re.Pattern[str] | str | None

_EXCLUDED_JSON_FILES = ("package-lock.json", "packages.lock.json")
_TOML_EXTS = (".toml",)
_YAML_EXTS = (".yaml", ".yml")
_DOC_SEPARATOR = re.compile(r"^---[ \t]*\r?$", re.MULTILINE)


def _ext(file_path: str) -> str:
    """Extension of the last path element, including the dot."""
    base = file_path.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def _compile(file_pattern: FilePattern) -> re.Pattern[str] | None:
    if file_pattern is None or isinstance(file_pattern, re.Pattern):
        return file_pattern
    return re.compile(file_pattern)


class _PatternAnalyzer:
    """Base for analyzers whose file selection can be widened by a regexp."""

    analyzer_type: AnalyzerType
    version: int = 1

    def __init__(self, file_pattern: FilePattern = None) -> None:
        self.file_pattern = _compile(file_pattern)

    def _matches_pattern(self, file_path: str) -> bool:
        return self.file_pattern is not None and self.file_pattern.search(file_path) is not None

    def _result(self, target: AnalysisTarget, contents: list[Any]) -> AnalysisResult:
        return AnalysisResult(
            configs=[
                Config(type=str(self.analyzer_type), file_path=target.file_path, content=c)
                for c in contents
            ]
        )


class JSONConfigAnalyzer(_PatternAnalyzer):
    """Parses JSON files, skipping package manager lock files."""

    analyzer_type = AnalyzerType.JSON

    def __init__(self, file_pattern: FilePattern = None) -> None:
        super().__init__(file_pattern)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            parsed = json.loads(target.content)
        except ValueError as err:
            raise ValueError(f"unable to parse JSON ({target.file_path}): {err}") from err
        return self._result(target, [parsed])

    def required(self, file_path: str, info: Any = None) -> bool:
        if self._matches_pattern(file_path):
            return True
        if posixpath.basename(file_path) in _EXCLUDED_JSON_FILES:
            return False
        return _ext(file_path) == ".json"


class TOMLConfigAnalyzer(_PatternAnalyzer):
    """Parses TOML files."""

    analyzer_type = AnalyzerType.TOML

    def __init__(self, file_pattern: FilePattern = None) -> None:
        super().__init__(file_pattern)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        try:
            parsed = tomllib.loads(target.content.decode("utf-8"))
        except (UnicodeDecodeError, tomllib.TOMLDecodeError) as err:
            raise ValueError(f"unable to parse TOML ({target.file_path}): {err}") from err
        return self._result(target, [parsed])

    def required(self, file_path: str, info: Any = None) -> bool:
        return self._matches_pattern(file_path) or _ext(file_path) in _TOML_EXTS


class _YAMLLoader(yaml.SafeLoader):
    """Safe loader that rejects anchors referring to themselves."""

    def __init__(self, stream: str) -> None:
        super().__init__(stream)
        self._open_anchors: set[str] = set()

    def compose_node(self, parent, index):  # type: ignore[override]
        event = self.peek_event()
        anchor = getattr(event, "anchor", None)
        if isinstance(event, yaml.AliasEvent):
            if anchor in self._open_anchors:
                raise yaml.YAMLError(f"yaml: anchor '{anchor}' value contains itself")
            return super().compose_node(parent, index)
        if anchor is None:
            return super().compose_node(parent, index)
        self._open_anchors.add(anchor)
        try:
            return super().compose_node(parent, index)
        finally:
            self._open_anchors.discard(anchor)


def _separate_documents(content: bytes) -> list[str]:
    text = content.decode("utf-8")
    return [doc for doc in _DOC_SEPARATOR.split(text) if doc.strip()]


class YAMLConfigAnalyzer(_PatternAnalyzer):
    """Parses YAML files; each sub-document becomes its own config."""

    analyzer_type = AnalyzerType.YAML

    def __init__(self, file_pattern: FilePattern = None) -> None:
        super().__init__(file_pattern)

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        contents = []
        try:
            for doc in _separate_documents(target.content):
                contents.append(yaml.load(doc, Loader=_YAMLLoader))
        except (UnicodeDecodeError, yaml.YAMLError) as err:
            raise ValueError(
                f"unable to parse YAML ({target.file_path}): unmarshal yaml: {err}"
            ) from err
        return self._result(target, contents)

    def required(self, file_path: str, info: Any = None) -> bool:
        return self._matches_pattern(file_path) or _ext(file_path) in _YAML_EXTS


def _join(dir_path: str, file_path: str) -> str:
    parts = [p for p in (dir_path, file_path) if p]
    if not parts:
        return ""
    return posixpath.normpath(posixpath.join(*parts))


class TerraformConfigAnalyzer:
    """Records Terraform files by path, relative to the working directory."""

    analyzer_type = AnalyzerType.TERRAFORM
    version = 1

    def analyze(self, target: AnalysisTarget) -> AnalysisResult:
        return AnalysisResult(
            configs=[
                Config(
                    type=str(self.analyzer_type),
                    file_path=_join(target.dir_path, target.file_path),
                )
            ]
        )

    def required(self, file_path: str, info: Any = None) -> bool:
        return _ext(file_path) == ".tf"