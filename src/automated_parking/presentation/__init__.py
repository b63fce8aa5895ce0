# File: src/automated_parking/presentation/__init__.py
