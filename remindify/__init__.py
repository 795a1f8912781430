"""Turn text and screenshots into reminders through Dify, with a local deduplication cache and image normalisation."""

__version__ = "0.1.0"