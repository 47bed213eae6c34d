"""Mock agent backend for local development.

Serves the mock event script over the same SSE endpoint the live transport
talks to, so the client can be exercised end to end without a real agent.
"""
