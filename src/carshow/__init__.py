"""carshow - car show event back-office.

Event-scoped staff authorization and the registration review/gate
workflow behind the organizer portal.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
