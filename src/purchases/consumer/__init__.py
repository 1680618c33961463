"""
Queue consumer package.

- main.py: subscription loop + startup/shutdown
- handler.py: classify / validate one message, hand it to the repository
- models.py: typed records and their decoders
- repository.py: Postgres DDL and inserts
"""
