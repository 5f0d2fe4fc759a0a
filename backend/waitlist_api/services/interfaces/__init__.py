"""
Service interfaces for dependency inversion.
Lets each event kind keep its own storage shape behind one contract.
"""

from .waitlist import WaitlistStrategy

__all__ = ['WaitlistStrategy']
