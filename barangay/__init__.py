"""
Barangay Portal - case module.
Residents file complaint cases; barangay staff move them through the case lifecycle.
"""

__version__ = "1.0.0"
