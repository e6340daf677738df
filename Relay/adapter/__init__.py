"""
Adapter package for calling different LLM providers.

Each provider dialect has its own adapter implementation in this directory, all
conforming to the ChatAdapter interface defined in base_adapter.py, and is
registered by provider id in registry.py.
"""
