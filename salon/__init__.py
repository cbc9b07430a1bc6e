"""salon - a multi-agent conversation room driven by language models."""

__version__ = "0.1.0"
