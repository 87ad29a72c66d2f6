"""dcrps - list and diagnose processes of the Decred Go family."""

__version__ = "0.1.0"
