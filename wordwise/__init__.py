"""
Wordwise - learning-state scheduler and adaptive test generator.

Packages:
- db: SQLAlchemy models and the learning record store
- cache: Cache-aside gateway and key naming over Redis
- study: Scheduling engine, test generator, progress aggregation
- cli: Operator CLI (typer + rich)
"""

__version__ = "1.0.0"
