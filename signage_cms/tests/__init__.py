"""
Signage CMS Test Package.

Unit tests for services and integration tests for the API endpoints.
"""
