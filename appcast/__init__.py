"""Package a macOS app bundle and publish a Sparkle appcast for it."""

__version__ = "0.1.0"
