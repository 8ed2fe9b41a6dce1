"""hoststat - sample host CPU load, memory and volume usage."""

__version__ = "0.1.0"
