"""CAN bus toolkit: DBC files, signal decoding, CSV log loading and SLCAN protocol text."""

__version__ = "0.1.21"