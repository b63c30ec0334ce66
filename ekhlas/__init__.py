"""Ekhlas school management: role gate, navigation and admin APIs."""

__version__ = "0.1.0"
