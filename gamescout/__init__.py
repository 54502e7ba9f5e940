"""GameScout - installed game discovery and metadata resolution."""

__version__ = "0.3.0"
