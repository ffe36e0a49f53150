"""Domain Event definitions.

Represents the steps of a send call (attempts, failures, scheduled retries)
so an injected observer can react to them.
"""
