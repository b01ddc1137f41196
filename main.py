"""
Dividend Tracker - Main Entry Point
===================================
Run this file to start the dividend tracker CLI.
Usage: python main.py
"""

from divtracker.cli import main


if __name__ == "__main__":
    main()
