"""
Configuration package for Relay.

This package provides:
- YAML-based configuration (config.yaml + local.yaml + optional override file)
- Deep-merge logic and environment variable substitution
- Helpers that extract the model chain, provider credentials and generation defaults
"""
