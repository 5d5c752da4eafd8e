"""
Core storage logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3
or the Azure SDK. The provider contract, error types and retry rules
can be tested without any cloud client.
"""
