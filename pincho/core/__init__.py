"""Core Application Layer: the client facade that callers use.

Prepares requests from domain objects and hands them to the resilience
layer for execution.
"""
