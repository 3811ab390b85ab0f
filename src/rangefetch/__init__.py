"""
rangefetch: download one large resource over several concurrent byte-range
requests and reassemble it in order.
"""

__version__ = "0.1.0"
