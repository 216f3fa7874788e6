"""
Image recognition client.

Validates an upload locally, then asks trace.moe (anime scenes) and, when
that finds nothing, SauceNAO (manga / manhwa / illustrations).
"""

from typing import Optional
import logging

from .anilist_adapter import AniListAdapter
from .base_adapter import RecognitionAdapter
from .saucenao_adapter import SauceNaoAdapter
from .trace_moe_adapter import TraceMoeAdapter
from animeworld.config.settings import RECOGNITION_MAX_BYTES, RECOGNITION_SUPPORTED_FORMATS
from animeworld.exceptions import ImageValidationError, MediaNotResolvedError, RecognitionError
from animeworld.models import ImageUpload, RecognitionResult

logger = logging.getLogger(__name__)


def validate_image(upload: ImageUpload, max_bytes: int = RECOGNITION_MAX_BYTES):
    """
    Check an upload before any network call

    Raises:
        ImageValidationError: reason 'unsupported_format' or 'too_large'
    """
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in RECOGNITION_SUPPORTED_FORMATS:
        raise ImageValidationError(
            ImageValidationError.UNSUPPORTED_FORMAT,
            "Unsupported file format. Please upload JPEG, PNG, WebP, or GIF images.",
        )

    if upload.size > max_bytes:
        raise ImageValidationError(
            ImageValidationError.TOO_LARGE,
            f"File size too large. Please upload images smaller than {max_bytes // (1024 * 1024)}MB.",
        )


class RecognitionClient:
    """Runs the provider chain and resolves recognized titles to catalog ids."""

    def __init__(
        self,
        trace_moe: Optional[RecognitionAdapter] = None,
        saucenao: Optional[RecognitionAdapter] = None,
        catalog: Optional[AniListAdapter] = None,
    ):
        self.trace_moe = trace_moe or TraceMoeAdapter()
        self.saucenao = saucenao or SauceNaoAdapter()
        self.catalog = catalog or AniListAdapter()

    def analyze(self, upload: ImageUpload) -> RecognitionResult:
        """
        Identify the media an image comes from

        Args:
            upload: Image to analyze

        Returns:
            The trace.moe result when it matched, otherwise SauceNAO's

        Raises:
            ImageValidationError: Before any network call, for bad uploads
            RecognitionError: When SauceNAO fails with a real API key
        """
        validate_image(upload)
        logger.info(f"Analyzing {upload.filename} ({upload.content_type}, {upload.size} bytes)")

        try:
            result = self.trace_moe.identify(upload)
        except RecognitionError as e:
            logger.warning(f"trace.moe unavailable, trying SauceNAO: {e}")
        else:
            if result.matched:
                return result
            logger.debug("No trace.moe match, trying SauceNAO")

        return self.saucenao.identify(upload)

    def resolve_media_id(self, result: RecognitionResult) -> int:
        """
        Catalog id for a recognition result.

        A positive match that carries a title but no id is looked up by
        title. Not retried.

        Raises:
            MediaNotResolvedError: When no id can be determined
            FetchError: When the catalog lookup itself fails
        """
        if result.media_id is not None:
            return result.media_id

        if not result.matched or not result.title:
            raise MediaNotResolvedError("Nothing to resolve: result has no match or title")

        media_id = self.catalog.find_id_by_title(result.title, result.media_kind)
        if media_id is None:
            raise MediaNotResolvedError(f"No catalog entry found for '{result.title}'")

        logger.info(f"Resolved '{result.title}' to media {media_id}")
        return media_id
