"""
Infrastructure layer - storage backends.

- storage.s3: Amazon S3 and S3-compatible services (boto3)
- storage.memory: In-memory storage for development and tests
"""
