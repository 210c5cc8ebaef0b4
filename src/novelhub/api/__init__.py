"""FastAPI application and REST API endpoints.

This module contains:
- Main FastAPI application configuration
- Access-control and service dependencies
- User account and story endpoints
- Error envelopes and middleware
"""
