"""Turn orchestration: applies a turn's event stream to the conversation store."""

__all__: list[str] = []
