"""Event sources for a streaming turn.

- `events`: the typed event value and event-type names
- `cursor`: the shared pull cursor and cooperative cancellation
- `transport`: the live HTTP Server-Sent-Events source
- `mock`: a deterministic scripted source for development
"""

__all__: list[str] = []
