"""agentcoord: file-based coordination for independently spawned agents."""

__version__ = "0.1.0"
