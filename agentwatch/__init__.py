"""Session telemetry core: output normalization, transcript indexing, usage stats."""
__version__ = "0.1.0"
