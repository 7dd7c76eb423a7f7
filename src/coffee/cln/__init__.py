"""Core Lightning boundary: config file patching and node RPC."""

from .conf import BEGIN_MARKER, END_MARKER, ConfigDocument, ConfigPatcher

__all__ = ["BEGIN_MARKER", "END_MARKER", "ConfigDocument", "ConfigPatcher"]
