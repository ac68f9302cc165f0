"""
Test suite for invoicegate

Contains:
- tests/unit/ : Unit tests for domain, storage, sequencing, access and services
"""
