"""Conference submission portal: review workflow and fee payment core."""

__version__ = "1.0.0"
