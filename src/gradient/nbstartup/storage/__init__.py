"""Storage layer: external commands, processes, and logging."""
