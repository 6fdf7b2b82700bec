"""Face training and thumbnail generation client with quota-gated job polling."""

__version__ = "0.1.0"
