"""
AnimeWorld: anime and manga discovery backend.

Catalog queries against AniList, image recognition through trace.moe and
SauceNAO, and a small user-record API.
"""

__version__ = "1.0.0"
