"""Agent Stream Client.

Consumes the typed event stream of a remote agent and keeps a client-side
conversation view in sync with it:
- text deltas streamed into assistant messages
- multi-step workflow progress delegated to a workflow engine
- cancellation and error handling that never leave the view half-updated
"""

__version__ = "0.1.0"

from agent_stream_client.client.config import ClientSettings

__all__ = ["__version__", "ClientSettings"]
