"""
burrow: code-based peer-to-peer file and text transfer from the terminal.
"""

__version__ = "0.4.0"
