"""Task service: one Lambda entry point for API Gateway, SQS and EventBridge."""

__version__ = "1.0.0"
