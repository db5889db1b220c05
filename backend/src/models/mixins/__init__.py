"""
Model mixins for shared functionality across entities.
"""

from backend.src.models.mixins.guid import GuidMixin, UUIDType, encode_guid

__all__ = ["GuidMixin", "UUIDType", "encode_guid"]
