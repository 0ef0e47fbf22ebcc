"""
taskbuddy: a conversational task assistant.

Packages:
- tasks: task model, in-memory store, notification times, reminder poller, tool dispatch
- core: ports, events, errors, conversation turn orchestration
- storage: SQLite persistence gateway
- llm: tool-calling LLM clients (OpenAI-compatible, offline)
- cli / connectors: console entrypoint
"""

__version__ = "0.1.0"
