# File: src/automated_parking/__init__.py
"""
Automated Parking Lot

Allocation-and-billing engine for an automated multi-floor parking lot:
best-floor selection by ceiling height and weight budget, transactional
space/weight bookkeeping and demand-sensitive billing.
"""

__version__ = "1.0.0"
