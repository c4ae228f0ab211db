"""SOOS CI scan: upload dependency manifests from a build and report the result."""

__version__ = "0.1.0"
