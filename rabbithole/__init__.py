"""Rabbithole Buddy - save, annotate and recall web pages"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports so lightweight modules (annotator, extension) don't pull in the API stack
def __getattr__(name: str):
    if name in ("ItemRecord", "NoteRecord", "HighlightRecord", "DrawingRecord", "ItemGroupRecord"):
        from rabbithole.library import models

        return getattr(models, name)

    if name == "AnnotatorSession":
        from rabbithole.annotator.session import AnnotatorSession

        return AnnotatorSession

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "AnnotatorSession",
    "DrawingRecord",
    "HighlightRecord",
    "ItemGroupRecord",
    "ItemRecord",
    "NoteRecord",
]
