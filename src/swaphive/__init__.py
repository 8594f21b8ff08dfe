"""HIVE <-> SWAP.HIVE bridge swap client."""

__version__ = "0.1.0"
