"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Core types, errors and configuration
    - In-memory and kazoo coordination clients
    - Registrar, watcher, aggregation cache and session
    - Runner, address discovery and command line
"""
