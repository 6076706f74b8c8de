"""Job discovery, scoring and Reactive Resume tailoring pipeline."""

__version__ = "0.1.0"
