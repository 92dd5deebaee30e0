"""
VE Threshold Monitor

Real-time ventilatory threshold monitoring from breath-by-breath VE.
"""

__version__ = "1.0.0"
