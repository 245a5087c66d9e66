"""Remote device cloud session lifecycle client."""

__version__ = "0.1.0"
