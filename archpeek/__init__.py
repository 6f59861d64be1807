"""archpeek: list archive contents without extracting them."""

__version__ = "1.0.0"
