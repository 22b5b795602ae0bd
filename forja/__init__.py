"""
forja - motor de aprovisionamiento declarativo de un solo host.
"""

__version__ = "0.1.0"
