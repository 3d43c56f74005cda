"""
                Order Intake Backend

Point-of-sale order intake: menu, collision-free order ids,
atomic order admission and hot-item reporting.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
