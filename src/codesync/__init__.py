"""CodeSync - Incremental repository sync with a remote code index."""

__version__ = "0.1.0"
