"""Chat with uploaded documents through retrieval-augmented generation."""

__version__ = "0.1.0"
