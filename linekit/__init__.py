"""Building blocks for terminal line editors: undo, validation, key decoding and rendering."""

__version__ = "0.1.0"
__all__ = ["keyseq", "posix_render", "posix_term", "term", "undo", "validate"]