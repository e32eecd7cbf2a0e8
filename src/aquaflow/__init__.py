"""aquaflow: water-can delivery marketplace for customers and area vendors."""

__version__ = "0.1.0"
