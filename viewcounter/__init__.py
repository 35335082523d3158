"""Profile view counter: persistent per-profile counts rendered as SVG badges."""

__version__ = "0.1.0"
