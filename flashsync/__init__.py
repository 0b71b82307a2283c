"""flashsync - two-way flashcard sync between a Markdown vault and Anki."""

__version__ = "0.1.0"
