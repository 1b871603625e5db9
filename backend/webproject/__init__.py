"""Image upload service: S3 storage, SQS/SNS notifications and DB/bucket consistency checks."""

__version__ = "0.1.0"
