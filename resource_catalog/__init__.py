"""Community catalog of study notes and books."""

__version__ = "0.1.0"
