"""Checkout shim: lets ``python -m topicforge.cli.convert_document`` find ``src/topicforge``."""

from __future__ import annotations

from pathlib import Path

__version__ = "0.1.0"

_SRC_PACKAGE = Path(__file__).resolve().parents[1] / "src" / "topicforge"

if _SRC_PACKAGE.is_dir() and str(_SRC_PACKAGE) not in __path__:
    __path__.append(str(_SRC_PACKAGE))
