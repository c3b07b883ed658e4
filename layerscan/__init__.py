"""Analyzers that detect operating systems, libraries, config files and apk-installed packages in image layers."""

__version__ = "0.1.0"