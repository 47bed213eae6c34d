"""Client-side ambient components.

- Settings loaded from the environment and `.env`
- Structured logging
- A small CLI surface for running turns and the mock backend
"""
