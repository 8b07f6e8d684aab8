"""Rolling-restart health gate for replicated StatefulSet fleets."""

__version__ = "0.1.0"
