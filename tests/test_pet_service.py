"""Unit tests for PetService — CRUD and avatar upload."""
import uuid
from unittest.mock import patch

import pytest

from app.exceptions import InvalidInputError, NotFoundError, PermissionDeniedError, PersistenceError
from app.schemas.pet import PetCreate, PetUpdate
from app.services.pet_service import PetService, owned_pet_ids

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def pet_service():
    return PetService()


class TestPetCrud:

    @pytest.mark.asyncio
    async def test_create_and_list(self, pet_service, db_session, make_user):
        owner = await make_user()
        payload = PetCreate(name="  Mochi ", species="dog", breed="  ", notes="")
        created = await pet_service.create_pet(owner.id, payload, db_session)
        assert created.ok
        assert created.value.name == "Mochi"
        assert created.value.breed is None
        assert created.value.notes is None

        listed = await pet_service.list_pets(owner.id, db_session)
        assert [p.id for p in listed.value] == [created.value.id]

    @pytest.mark.asyncio
    async def test_owned_pet_ids_oldest_first(self, db_session, make_user, make_pet):
        owner = await make_user()
        first = await make_pet(owner, name="First")
        second = await make_pet(owner, name="Second")
        assert await owned_pet_ids(db_session, owner.id) == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_update_by_owner(self, pet_service, db_session, make_user, make_pet):
        owner = await make_user()
        pet = await make_pet(owner)
        result = await pet_service.update_pet(owner.id, pet.id, PetUpdate(age=4), db_session)
        assert result.ok
        assert result.value.age == 4
        assert result.value.name == "Mochi"

    @pytest.mark.asyncio
    async def test_update_by_stranger_is_denied(self, pet_service, db_session, make_user, make_pet):
        pet = await make_pet(await make_user())
        stranger = await make_user()
        result = await pet_service.update_pet(stranger.id, pet.id, PetUpdate(name="Stolen"), db_session)
        assert isinstance(result.error, PermissionDeniedError)
        assert pet.name == "Mochi"

    @pytest.mark.asyncio
    async def test_delete(self, pet_service, db_session, make_user, make_pet):
        owner = await make_user()
        pet = await make_pet(owner)
        assert (await pet_service.delete_pet(owner.id, pet.id, db_session)).ok
        result = await pet_service.get_pet(pet.id, db_session)
        assert isinstance(result.error, NotFoundError)


class TestAvatarUpload:

    @pytest.mark.asyncio
    async def test_upload_sets_avatar_url(self, pet_service, db_session, make_user, make_pet):
        owner = await make_user()
        pet = await make_pet(owner)
        url = f"https://storage.googleapis.com/pawmatch-test/avatars/{pet.id}/a.png"

        with patch("app.services.pet_service.storage.upload_file", return_value=url) as upload:
            result = await pet_service.upload_avatar(owner.id, pet.id, PNG_BYTES, "image/png", db_session)

        assert result.ok
        assert result.value.avatar_url == url
        path, data, content_type = upload.call_args.args
        assert path.startswith(f"avatars/{pet.id}/") and path.endswith(".png")
        assert data == PNG_BYTES
        assert content_type == "image/png"

    @pytest.mark.asyncio
    async def test_replacing_avatar_deletes_previous_object(self, pet_service, db_session, make_user, make_pet):
        owner = await make_user()
        old_url = "https://storage.googleapis.com/pawmatch-test/avatars/old.png"
        pet = await make_pet(owner, avatar_url=old_url)

        with patch("app.services.pet_service.storage.upload_file", return_value="https://x/new.png"), \
                patch("app.services.pet_service.storage.delete_file") as delete:
            result = await pet_service.upload_avatar(owner.id, pet.id, PNG_BYTES, "image/png", db_session)

        assert result.ok
        delete.assert_called_once_with("avatars/old.png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_type", ["application/pdf", "text/plain", ""])
    async def test_non_image_is_rejected(self, pet_service, db_session, make_user, make_pet, content_type):
        owner = await make_user()
        pet = await make_pet(owner)
        with patch("app.services.pet_service.storage.upload_file") as upload:
            result = await pet_service.upload_avatar(owner.id, pet.id, PNG_BYTES, content_type, db_session)
        assert isinstance(result.error, InvalidInputError)
        upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_oversized_file_is_rejected(self, pet_service, db_session, make_user, make_pet):
        owner = await make_user()
        pet = await make_pet(owner)
        huge = b"\x00" * (5 * 1024 * 1024 + 1)
        result = await pet_service.upload_avatar(owner.id, pet.id, huge, "image/jpeg", db_session)
        assert isinstance(result.error, InvalidInputError)

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported(self, pet_service, db_session, make_user, make_pet):
        owner = await make_user()
        pet = await make_pet(owner)
        with patch("app.services.pet_service.storage.upload_file", side_effect=RuntimeError("gcs down")):
            result = await pet_service.upload_avatar(owner.id, pet.id, PNG_BYTES, "image/png", db_session)
        assert isinstance(result.error, PersistenceError)
        assert pet.avatar_url is None

    @pytest.mark.asyncio
    async def test_unknown_pet(self, pet_service, db_session, make_user):
        owner = await make_user()
        result = await pet_service.upload_avatar(owner.id, uuid.uuid4(), PNG_BYTES, "image/png", db_session)
        assert isinstance(result.error, NotFoundError)
