"""chatcompact - conversation context compaction for chat backends."""

__version__ = "0.1.0"
__logo__ = "🗜️"
