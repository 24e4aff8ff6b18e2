"""forestkeeper - workspace model and branch cleanup for forests of git checkouts."""

__version__ = "0.1.0"
