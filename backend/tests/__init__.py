"""
Test Suite

Structure:
    tests/
    ├── conftest.py         # Pytest fixtures (mongomock database, directory)
    ├── unit/               # Engine, service and utility tests
    └── integration/        # REST API tests

To run tests:
    pytest backend/tests/
"""
