"""Document format conversion backends."""

from .base import DocumentConverter
from .convertapi import ConvertApiConverter

__all__ = ["DocumentConverter", "ConvertApiConverter"]
