"""Nightstalker - turn engine for a narrative horror choose-your-own-adventure."""

__version__ = "0.1.0"
