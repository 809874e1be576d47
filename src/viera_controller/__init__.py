"""Local network controller for Panasonic Viera televisions."""

__version__ = "0.1.0"
