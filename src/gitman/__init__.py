"""Git Monitor keeps a live view of git state across monitored project folders."""

__version__ = "0.1.0"
