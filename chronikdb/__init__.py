"""Script, outpoint and mempool indexes for a UTXO blockchain on an in-memory ordered key-value store."""

__version__ = "0.1.0"