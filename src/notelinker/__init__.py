"""notelinker: turn plain-text mentions of note titles into wikilinks."""

__version__ = "0.3.0"
