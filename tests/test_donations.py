import asyncio

import pytest
from pydantic import ValidationError

from medshare.backend.client import BackendError
from medshare.config.settings import UploadSettings
from medshare.donations.submit import image_path, submit_donation
from medshare.donations.validation import DonationForm, ImageUpload, InvalidImage, field_errors, validate_image
from medshare.repository.memory import MemoryMedicineStore

PNG = ImageUpload(filename="box.PNG", content_type="image/png", content=b"\x89PNG\r\n")


def _form(**overrides) -> dict:
    data = {
        "name": "Ibuprofen",
        "description": "Sealed strip of 10 tablets",
        "expiry": "2027-03-31",
        "category": "Pain Relief",
        "locality": "Koramangala",
        "is_free": True,
        "price": None,
        "latitude": None,
        "longitude": None,
    }
    data.update(overrides)
    return data


def _errors(**overrides) -> dict[str, str]:
    with pytest.raises(ValidationError) as excinfo:
        DonationForm.model_validate(_form(**overrides))
    return field_errors(excinfo.value)


def test_valid_free_donation_clears_typed_price():
    form = DonationForm.model_validate(_form(price="12"))
    assert form.price is None


@pytest.mark.parametrize("expiry", ["2027-03-31", "03/31/2027", "March 2027"])
def test_accepted_expiry_formats(expiry):
    assert DonationForm.model_validate(_form(expiry=expiry)).expiry == expiry


def test_field_messages():
    errors = _errors(name="ab", description="short", expiry="soon", category="", locality="x")
    assert errors == {
        "name": "Medicine name must be at least 3 characters",
        "description": "Description must be at least 10 characters",
        "expiry": "Please enter a valid expiry date (YYYY-MM-DD, MM/DD/YYYY, or Month YYYY)",
        "category": "Please select a category",
        "locality": "Location must be at least 3 characters",
    }


@pytest.mark.parametrize("price", [None, "", "0", "-3"])
def test_paid_donation_needs_positive_price(price):
    assert _errors(is_free=False, price=price) == {"price": "Price must be a valid number greater than 0"}


def test_paid_donation_accepts_string_price():
    assert DonationForm.model_validate(_form(is_free=False, price="9.50")).price == 9.5


def test_coordinates_range_and_pairing():
    assert _errors(latitude="91", longitude="0")["latitude"] == "Latitude must be between -90 and 90"
    assert _errors(latitude="12.9", longitude="")["form"] == "Latitude and longitude must be provided together"


def test_validate_image_rejects_type_and_size():
    settings = UploadSettings(max_image_bytes=4)
    with pytest.raises(InvalidImage, match="less than"):
        validate_image(PNG, settings)
    with pytest.raises(InvalidImage, match="valid image file"):
        validate_image(ImageUpload("notes.pdf", "application/pdf", b"%PDF"), UploadSettings())


def test_image_path_uses_user_folder_and_extension():
    assert image_path("u1", "box.PNG", now_ms=1700000000000) == "u1/1700000000000.png"
    assert image_path("u1", "noext", now_ms=1) == "u1/1.img"


def test_submit_uploads_then_inserts():
    store = MemoryMedicineStore()
    form = DonationForm.model_validate(_form(is_free=False, price="40", latitude="12.93", longitude="77.62"))

    listing = asyncio.run(submit_donation(store=store, form=form, image=PNG, user_id="u1", uploads=UploadSettings()))

    (path,) = store.objects
    assert path.startswith("u1/") and path.endswith(".png")
    assert listing.image_url == f"memory://medicines/{path}"
    assert listing.user_id == "u1"
    assert listing.price == 40
    assert listing.latitude == 12.93


def test_submit_rejects_bad_image_before_upload():
    store = MemoryMedicineStore()
    form = DonationForm.model_validate(_form())
    gif = ImageUpload("big.gif", "image/gif", b"x" * 10)

    with pytest.raises(InvalidImage):
        asyncio.run(submit_donation(store=store, form=form, image=gif, user_id="u1", uploads=UploadSettings(max_image_bytes=5)))
    assert store.objects == {}


def test_failed_insert_propagates_and_leaves_upload(caplog):
    class _InsertFails(MemoryMedicineStore):
        async def insert(self, row):
            raise BackendError("new row violates row-level security policy", code="42501", status=403)

    store = _InsertFails()
    with pytest.raises(BackendError):
        asyncio.run(
            submit_donation(
                store=store, form=DonationForm.model_validate(_form()), image=PNG, user_id="u1", uploads=UploadSettings()
            )
        )
    assert len(store.objects) == 1
    assert "orphaned" in caplog.text
