"""Core analytics engine: codec, normalizer, record store and aggregator."""
