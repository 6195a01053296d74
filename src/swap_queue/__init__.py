"""py-swap-queue — persistent, resumable task queue for multi-step blockchain swaps."""

__version__ = "0.1.0"
