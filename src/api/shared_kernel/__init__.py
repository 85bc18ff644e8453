"""Shared Kernel module.

This module contains foundational components that are explicitly shared across
the schema and data bounded contexts: the error taxonomy, schema primitives
(types, physical names, descriptors) and the SQL statement builders.
Changes to this module affect multiple contexts and should be carefully
coordinated.

Following Domain-Driven Design principles, the Shared Kernel is a small,
carefully managed set of components that contexts agree to depend on.
"""
