"""Toolbox for deploying Helm charts with OCM."""

__version__ = "0.1.0"
