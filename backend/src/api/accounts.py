import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from api.dependencies import get_blob_store, get_database
from api.schemas import AccountRequest
from api.uploads import discard_on_failure, read_image
from core.database import Database
from core.errors import ValidationError
from services.user import UserService
from storage.blob import PROFILES_PREFIX, BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.post("/upload-profile-image")
async def upload_profile_image(
    account: Annotated[str, Form(min_length=1, max_length=50)],
    profile_image: UploadFile = File(...),
    database: Database = Depends(get_database),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Replace the account's avatar; the previous object is removed afterwards."""
    image = await read_image(profile_image)
    async with database.session() as db:
        old_url = await UserService(db).get_profile_image_url(account)

    new_url = await blob_store.upload(image, PROFILES_PREFIX)
    async with discard_on_failure(blob_store, [new_url]):
        async with database.transaction() as db:
            await UserService(db).set_profile_image_url(account, new_url)

    if old_url and not await blob_store.delete(old_url):
        logger.warning("Old profile image for %s was not removed: %s", account, old_url)
    return {"success": True, "account": account, "profileImageUrl": new_url}


@router.delete("/delete-profile-image")
async def delete_profile_image(
    body: AccountRequest,
    database: Database = Depends(get_database),
    blob_store: BlobStore = Depends(get_blob_store),
):
    async with database.transaction() as db:
        service = UserService(db)
        url = await service.get_profile_image_url(body.account)
        if not url:
            raise ValidationError("This account has no profile image")
        await service.set_profile_image_url(body.account, None)

    if not await blob_store.delete(url):
        logger.warning("Profile image for %s was not removed from storage: %s", body.account, url)
    return {"success": True, "account": body.account}
