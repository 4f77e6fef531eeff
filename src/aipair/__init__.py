"""AI Pair: test-driven repair loop backed by pluggable code-generation models."""

__version__ = "0.1.0"
