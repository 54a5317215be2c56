"""Control client for network-attached Marlin printers."""

__version__ = "0.1.0"
