"""coursebooks - campus textbook store: feed ingestion, course paging and buying decisions."""

__version__ = "0.1.0"
