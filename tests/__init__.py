"""
Test Suite for the Performance Metrics Engine

Includes:
- CLI command tests against a temporary cache database
- Package-level unit tests live beside each package (analysis, ingestion, storage, pipeline)
"""
