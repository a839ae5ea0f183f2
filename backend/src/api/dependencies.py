from fastapi import Request

from core.database import Database
from storage.blob import BlobStore


async def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store
