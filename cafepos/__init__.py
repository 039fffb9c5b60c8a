"""Café point-of-sale client: order domain, receipt rendering and a Textual front end."""

__version__ = "0.1.0"
