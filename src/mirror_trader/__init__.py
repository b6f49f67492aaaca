"""Mirror a target wallet's Polymarket trades onto your own account."""

__version__ = "0.1.0"
