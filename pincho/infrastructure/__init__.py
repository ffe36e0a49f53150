"""Infrastructure Layer: HTTP transport, resilience, encryption, config and CLI.

Connects the client to the outside world (the Pincho API, the environment,
the terminal).
"""
