"""
Unit Tests Package for the Automated Parking Lot

Unit tests exercise one component at a time: domain value types and
strategies, the four lot components over mocked repositories, the
repositories over in-memory SQLite, DTOs, commands and messaging.
"""
