"""Virtual try-on gateway for hosted IDM-VTON models."""

__version__ = "1.0.0"
