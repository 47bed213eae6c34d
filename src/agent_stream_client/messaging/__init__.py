"""Conversation message types.

- `chat`: the simplified role/content messages sent to the agent as context
- `models`: the richer message variants held by the conversation store
"""

__all__: list[str] = []
