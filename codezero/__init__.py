"""
codezero: AI code playground backend with peer-to-peer call signaling.
"""

__version__ = "0.1.0"
