"""rollscan: chunked, credential-rotating voter roll extraction."""

__version__ = "0.1.0"
