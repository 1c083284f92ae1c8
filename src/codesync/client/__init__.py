"""Client module - Remote index API, preferences, sync pipeline and CLI."""
