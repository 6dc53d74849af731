"""compatscan - PHP and platform upgrade compatibility scanner."""

__version__ = "0.4.0"
