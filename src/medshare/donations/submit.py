"""
Donation submission: validate, upload the image, insert the listing.

The two backend steps are not atomic. If the insert fails after the upload
succeeded, the stored image is left behind (logged as an orphan) and the insert
error propagates to the caller.
"""

from __future__ import annotations

import logging
import time
from pathlib import PurePosixPath

from medshare.config.settings import UploadSettings
from medshare.domain.models import MedicineListing
from medshare.donations.validation import DonationForm, ImageUpload, validate_image
from medshare.repository.medicines import MedicineRepository
from medshare.repository.ports import MedicineStore

logger = logging.getLogger(__name__)


def image_path(user_id: str, filename: str, *, now_ms: int | None = None) -> str:
    """Object key for a listing image: `<user_id>/<epoch_ms>.<ext>`."""
    ext = PurePosixPath(filename).suffix.lstrip(".").lower() or "img"
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{user_id}/{stamp}.{ext}"


async def submit_donation(
    *,
    store: MedicineStore,
    form: DonationForm,
    image: ImageUpload,
    user_id: str,
    uploads: UploadSettings,
) -> MedicineListing:
    """Create a listing for `user_id`.

    Raises:
        InvalidImage: Before any network call, for a wrong type or oversized image.
        BackendError: When the upload or the insert fails.
    """
    validate_image(image, uploads)

    path = image_path(user_id, image.filename)
    image_url = await store.upload(path, image.content, content_type=image.content_type)
    logger.info("Image uploaded for %s: %s", user_id, image_url)

    repository = MedicineRepository(store)
    try:
        return await repository.add_medicine(form.to_new_medicine(user_id=user_id, image_url=image_url))
    except Exception:
        logger.warning("Listing insert failed; uploaded image %s is now orphaned", path)
        raise
