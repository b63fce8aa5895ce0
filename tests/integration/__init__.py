"""
Integration Tests Package for the Automated Parking Lot

Integration tests run the parking service and the command-line interface
against real SQLite databases (in memory or in a temporary file).

Integration tests focus on:
1. End-to-end park and pull-out scenarios, including billing
2. Lot invariants over long random operation sequences
3. Concurrent workers racing for the same spaces and vehicles
4. The command-line request/response surface
"""
