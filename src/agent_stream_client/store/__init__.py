"""Observable conversation state."""

__all__: list[str] = []
