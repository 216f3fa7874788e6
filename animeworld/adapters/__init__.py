"""
Adapters for the external services AnimeWorld talks to.
"""

from .anilist_adapter import AniListAdapter
from .debounce import SearchDebouncer
from .filter_query import FilterState, build_filter_query
from .recognition import RecognitionClient, validate_image
from .saucenao_adapter import SauceNaoAdapter
from .trace_moe_adapter import TraceMoeAdapter
from .user_api_client import UserApiClient

__all__ = [
    'AniListAdapter',
    'FilterState',
    'RecognitionClient',
    'SauceNaoAdapter',
    'SearchDebouncer',
    'TraceMoeAdapter',
    'UserApiClient',
    'build_filter_query',
    'validate_image',
]
