"""
Synthetic traffic for local runs.

- data_factory.py: purchase / donation payload builders (Faker)
- producer.py: Kafka publish loop
"""
