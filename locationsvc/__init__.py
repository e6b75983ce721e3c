"""Location models, a DynamoDB-backed repository and an AppSync resolver for them."""

__version__ = "0.1.0"