"""Local HTTP surface for out-of-process UI clients."""
