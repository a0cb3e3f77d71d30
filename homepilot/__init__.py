"""
HomePilot - natural-language control, pattern learning and state mirroring
for a Home Assistant hub.
"""

__version__ = "0.1.0"
