"""
salon_scheduler - appointment scheduling and availability engine for salons.
"""

__version__ = "0.1.0"
