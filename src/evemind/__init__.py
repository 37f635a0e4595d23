"""evemind: memory, learning and chat orchestration for virtual employees."""

__version__ = "0.1.0"
