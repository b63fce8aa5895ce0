# File: src/automated_parking/main.py
"""
Main application entry point for the Automated Parking Lot

    python -m automated_parking.main park --vehicle-id B-AB123 --weight 1500 --height 160
"""

import sys

from .presentation.cli import main


if __name__ == "__main__":
    sys.exit(main())
