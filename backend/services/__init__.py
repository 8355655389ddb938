"""
Charla Services - Shared infrastructure services.

- llm_client: OpenAI chat completions wrapper
- store: SQLite persistence (identities, sessions, messages, memories)
- sessions: session token issue / resolve / revoke
- context_builder: per-turn dynamic context summary
"""
