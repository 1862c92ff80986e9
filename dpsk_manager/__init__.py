"""
Ruckus DPSK manager
Manage Dynamic PSKs on a Ruckus Unleashed controller through its web console
"""

__version__ = "1.0.0"
