"""CodeTrace: local source search, log-to-source tracing and data-source resolution."""

__version__ = "1.0.0"
