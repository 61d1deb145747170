"""Compute blade agent: fan curve, LED patterns, identify/critical modes and smart fan unit protocol."""

__version__ = "0.1.0"