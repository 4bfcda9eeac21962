"""FitTrack step counting, backend sync, and reference fitness service."""

__version__ = "0.1.0"
