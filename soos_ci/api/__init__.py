"""SOOS REST API client and wire schemas."""

from soos_ci.api.client import SOOSClient, decode_manifest_name, encode_manifest_name

__all__ = ["SOOSClient", "decode_manifest_name", "encode_manifest_name"]
