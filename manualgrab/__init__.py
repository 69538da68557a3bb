"""Download workshop manuals from an authenticated portal as PDF/HTML."""

__version__ = "0.1.0"
