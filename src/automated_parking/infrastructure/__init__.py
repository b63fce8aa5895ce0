# File: src/automated_parking/infrastructure/__init__.py
