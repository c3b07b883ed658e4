"""Shared data types: analyzer kinds, OS families and analysis records."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class AnalyzerType(enum.StrEnum):
    """Identifier of an analyzer, also used as an application or config type."""

    # OS
    ALPINE = "alpine"
    AMAZON = "amazon"
    DEBIAN = "debian"
    PHOTON = "photon"
    CENTOS = "centos"
    FEDORA = "fedora"
    ORACLE = "oracle"
    REDHAT_BASE = "redhat"
    SUSE = "suse"
    UBUNTU = "ubuntu"

    # OS package
    APK = "apk"
    DPKG = "dpkg"
    RPM = "rpm"

    # Programming language package
    BUNDLER = "bundler"
    CARGO = "cargo"
    COMPOSER = "composer"
    JAR = "jar"
    NPM = "npm"
    NUGET = "nuget"
    PIPENV = "pipenv"
    POETRY = "poetry"
    YARN = "yarn"
    GO_BINARY = "gobinary"
    GO_MOD = "gomod"

    # Image config
    APK_COMMAND = "apk-command"

    # Structured config
    YAML = "yaml"
    TOML = "toml"
    JSON = "json"
    DOCKERFILE = "dockerfile"
    HCL = "hcl"
    TERRAFORM = "terraform"


# OS families
REDHAT = "redhat"
DEBIAN = "debian"
UBUNTU = "ubuntu"
CENTOS = "centos"
FEDORA = "fedora"
AMAZON = "amazon"
ORACLE = "oracle"
WINDOWS = "windows"
OPENSUSE = "opensuse"
OPENSUSE_LEAP = "opensuse.leap"
OPENSUSE_TUMBLEWEED = "opensuse.tumbleweed"
SLES = "suse linux enterprise server"
PHOTON = "photon"
ALPINE = "alpine"


class AnalyzeOSError(Exception):
    """Raised when a release file does not describe a known OS."""

    MESSAGE = "unable to analyze OS information"

    def __init__(self, source: str = "") -> None:
        self.source = source
        super().__init__(f"{source}: {self.MESSAGE}" if source else self.MESSAGE)


@dataclass
class OS:
    """Detected operating system."""

    family: str = ""
    name: str = ""


@dataclass
class Package:
    """An installed OS package."""

    name: str = ""
    version: str = ""
    src_name: str = ""
    src_version: str = ""
    license: str = ""


@dataclass
class PackageInfo:
    """Packages found in one package database file."""

    file_path: str = ""
    packages: list[Package] = field(default_factory=list)


@dataclass
class Library:
    """A dependency found in a lock file or binary."""

    name: str = ""
    version: str = ""


@dataclass
class LibraryInfo:
    """A library together with its metadata."""

    library: Library = field(default_factory=Library)


@dataclass
class Application:
    """Libraries found in one application manifest."""

    type: str = ""
    file_path: str = ""
    libraries: list[LibraryInfo] = field(default_factory=list)


@dataclass
class Config:
    """A parsed configuration file."""

    type: str = ""
    file_path: str = ""
    content: Any = None