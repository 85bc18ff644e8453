"""Shared middleware for cross-cutting concerns.

This module contains value objects and probes for request-scoped concerns
shared across bounded contexts. The tenant context is the primary
component, carrying the tenant resolved from request headers.
"""
