# File: src/automated_parking/application/__init__.py
