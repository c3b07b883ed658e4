"""Guess Alpine packages installed by `apk add` commands in image history."""

from __future__ import annotations

import json
import logging
import os
import re
import urllib.error
import urllib.request
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from layerscan.types import ALPINE, OS, AnalyzerType, Package

logger = logging.getLogger(__name__)

ENV_INDEX_URL = "LAYERSCAN_APK_INDEX_ARCHIVE_URL"

_FRACTION = re.compile(r"(\.\d{6})\d+")


def _field(obj: Any, name: str) -> Any:
    """Look up a JSON object member, matching the name case-insensitively."""
    if not isinstance(obj, Mapping):
        return None
    if name in obj:
        return obj[name]
    lowered = name.lower()
    for key, value in obj.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


@dataclass
class ApkArchive:
    """History of one package in the APKINDEX archive."""

    origin: str = ""
    versions: dict[str, int] = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any) -> ApkArchive:
        versions = _field(data, "Versions") or {}
        return cls(
            origin=_field(data, "Origin") or "",
            versions={str(v): int(t) for v, t in versions.items()},
            dependencies=list(_field(data, "Dependencies") or ()),
            provides=list(_field(data, "Provides") or ()),
        )


@dataclass
class ApkIndex:
    """Packages of an Alpine release and what provides shared objects and names."""

    packages: dict[str, ApkArchive] = field(default_factory=dict)
    so_provides: dict[str, str] = field(default_factory=dict)
    package_provides: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any) -> ApkIndex:
        if not isinstance(data, Mapping):
            raise ValueError("APKINDEX archive must be a JSON object")
        provide = _field(data, "Provide") or {}

        def providers(entries: Any) -> dict[str, str]:
            return {
                name: _field(entry, "Package") or ""
                for name, entry in (entries or {}).items()
            }

        return cls(
            packages={
                name: ApkArchive.from_json(entry)
                for name, entry in (_field(data, "Package") or {}).items()
            },
            so_provides=providers(_field(provide, "SO")),
            package_provides=providers(_field(provide, "Package")),
        )


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    text = _FRACTION.sub(r"\1", str(value))
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AlpineCommandAnalyzer:
    """Reconstructs packages added by `apk add` from the image build history.

    Versions are guessed from an archive of APKINDEX history: the newest
    version built no later than the layer was created.
    """

    analyzer_type = AnalyzerType.APK_COMMAND
    version = 1

    def __init__(self, index_url: str | None = None) -> None:
        # The URL may hold "%s", which is replaced by the Alpine minor version.
        self.index_url = index_url or os.environ.get(ENV_INDEX_URL) or None

    def required(self, target_os: OS) -> bool:
        return target_os.family == ALPINE

    def analyze(self, target_os: OS, config_blob: bytes) -> list[Package]:
        """Packages installed by history commands.

        Raises ValueError or OSError when the index or config cannot be read.
        """
        try:
            index = self.fetch_index(target_os)
        except (OSError, ValueError) as err:
            logger.info("%s", err)
            raise type(err)(f"failed to fetch apk index archive: {err}") from err
        try:
            config = json.loads(config_blob)
            if not isinstance(config, Mapping):
                raise ValueError("docker config must be a JSON object")
            return self.parse_config(index, config)
        except ValueError as err:
            raise ValueError(f"failed to unmarshal docker config: {err}") from err

    def fetch_index(self, target_os: OS) -> ApkIndex:
        """Load the APKINDEX archive for the OS's minor release."""
        if not self.index_url:
            raise ValueError(f"no APKINDEX archive URL configured ({ENV_INDEX_URL})")
        # 3.9.3 => 3.9
        os_ver = target_os.name
        if os_ver.count(".") > 1:
            os_ver = os_ver[: os_ver.rfind(".")]
        url = self.index_url.replace("%s", os_ver, 1)

        if url.startswith("file://"):
            try:
                with open(url.removeprefix("file://"), "rb") as fh:
                    raw = fh.read()
            except OSError as err:
                raise OSError(f"failed to read APKINDEX archive file: {err}") from err
        else:
            try:
                with urllib.request.urlopen(url) as resp:
                    raw = resp.read()
            except (OSError, ValueError) as err:
                raise OSError(f"failed to fetch APKINDEX archive: {err}") from err

        try:
            data = json.loads(raw)
        except ValueError as err:
            raise ValueError(f"failed to decode APKINDEX JSON: {err}") from err
        return ApkIndex.from_json(data)

    def parse_config(self, index: ApkIndex, config: Mapping[str, Any]) -> list[Package]:
        """Packages from every history entry, one per name, later entries winning."""
        envs: dict[str, str] = {}
        container_config = _field(config, "container_config") or {}
        for env in _field(container_config, "Env") or ():
            name, sep, value = str(env).partition("=")
            if sep:
                envs["$" + name] = value

        unique: dict[str, Package] = {}
        for history in _field(config, "history") or ():
            command = _field(history, "created_by") or ""
            created_at = _parse_time(_field(history, "created"))
            names = self.parse_command(command, envs)
            names = self.resolve_dependencies(index, names)
            for pkg in self.guess_version(index, names, created_at):
                unique[pkg.name] = pkg
        return list(unique.values())

    def parse_command(self, command: str, envs: Mapping[str, str]) -> list[str]:
        """Package names passed to `apk add` in a shell command."""
        if "#(nop)" in command:
            return []
        command = command.removeprefix("/bin/sh -c")
        commands = [
            part.strip() for chunk in command.split("&&") for part in chunk.split(";")
        ]
        packages: list[str] = []
        for cmd in commands:
            if not cmd.startswith("apk"):
                continue
            adding = False
            for word in cmd.split():
                if word.startswith(("-", ".")):
                    continue
                if word == "add":
                    adding = True
                elif adding:
                    if word.startswith("$"):
                        packages.extend(envs.get(word, "").split())
                        continue
                    packages.append(word)
        return packages

    def resolve_dependencies(self, index: ApkIndex, packages: Iterable[str]) -> list[str]:
        """The packages with all their transitive dependencies, without duplicates."""
        unique: dict[str, None] = {}
        for name in packages:
            if name in unique:
                continue
            for resolved in self._resolve(index, name, set()):
                unique[resolved] = None
        return list(unique)

    def _resolve(self, index: ApkIndex, name: str, seen: set[str]) -> list[str]:
        archive = index.packages.get(name)
        if archive is None or name in seen:
            return []
        seen.add(name)

        names = [name]
        for dependency in archive.dependencies:
            # sqlite-libs=3.26.0-r3 => sqlite-libs
            dependency = dependency.split("=", 1)[0]
            if dependency.startswith("so:"):
                provider = index.so_provides.get(dependency[3:], "")
                names.extend(self._resolve(index, provider, seen))
                continue
            if dependency.startswith(("pc:", "cmd:")):
                continue
            provider = index.package_provides.get(dependency)
            if provider is not None:
                names.extend(self._resolve(index, provider, seen))
                continue
            names.extend(self._resolve(index, dependency, seen))
        return names

    def guess_version(
        self, index: ApkIndex, packages: Iterable[str], created_at: datetime | None
    ) -> list[Package]:
        """Pick for each package the newest version built by ``created_at``."""
        if created_at is None:
            return []
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        created_unix = int(created_at.timestamp())

        result: list[Package] = []
        for name in packages:
            archive = index.packages.get(name)
            if archive is None:
                continue
            candidate = ""
            for version, built_at in sorted(archive.versions.items(), key=lambda kv: kv[1]):
                if built_at > created_unix:
                    break
                candidate = version
            if not candidate:
                continue
            result.append(Package(name=name, version=candidate))
            if archive.origin and archive.origin != name:
                result.append(Package(name=archive.origin, version=candidate))
        return result