"""
Database package initialization.

- base: declarative base and the shared id, timestamp, tenant and active mixins
- connection: async engine and session management
- models: ORM models for companies, catalog, orders, finance and priority rules
"""

__all__ = []
