"""Domain Event definitions.

Represents significant occurrences in the resilience layer (attempts,
retries, stale fallbacks) that observers such as logs or a UI can react to.
"""
