"""Modular reader engine package."""

from .config_schema import ReaderConfig
from .errors import ReaderError
from .models import Chapter, Verse
from .refs import StructureType
from .view import ReaderView
from .window import ChapterWindow

__all__ = ["Chapter", "ChapterWindow", "ReaderConfig", "ReaderError", "ReaderView", "StructureType", "Verse"]
