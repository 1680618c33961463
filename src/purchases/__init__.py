"""
Purchases event pipeline.

- consumer: queue -> classify/validate -> Postgres
- producer: synthetic purchase/donation traffic for local runs
"""

__version__ = "0.1.0"
