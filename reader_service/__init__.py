"""Reader service: reference model and infinite chapter window for the text reader."""

__version__ = "0.1.0"
