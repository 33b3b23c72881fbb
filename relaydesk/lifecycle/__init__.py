"""Durable records and their guarded transitions.

- models: Actor, Request, Category and the status graph
- store: document store contract with precondition-checked saves
- repository / actors / categories: per-collection access
- sessions: ephemeral per-actor conversation state
"""
