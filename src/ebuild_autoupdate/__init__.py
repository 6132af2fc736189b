"""Upstream version discovery and version bumps for Gentoo overlays."""

__version__ = "0.1.0"
