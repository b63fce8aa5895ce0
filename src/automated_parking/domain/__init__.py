# File: src/automated_parking/domain/__init__.py
