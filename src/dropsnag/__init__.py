"""dropsnag: claim restaurant reservations the moment they drop."""

__version__ = "0.1.0"
