"""
Intune Assignments - report the Intune policies and applications assigned to an Entra ID group
"""

__version__ = "1.0.0"
