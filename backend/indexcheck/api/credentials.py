import uuid

from fastapi import APIRouter, Depends, HTTPException

from indexcheck.api.deps import get_credentials
from indexcheck.api.schemas import CredentialsRequest, CredentialsResponse
from indexcheck.services.credentials import CredentialStore

router = APIRouter(prefix="/settings", tags=["settings"])


def _user_uuid(user_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="user_id must be a UUID")


@router.get("", response_model=CredentialsResponse)
def get_settings(user_id: str, store: CredentialStore = Depends(get_credentials)):
    return CredentialsResponse(configured=store.has_credentials(_user_uuid(user_id)))


@router.put("", response_model=CredentialsResponse)
def put_settings(payload: CredentialsRequest, store: CredentialStore = Depends(get_credentials)):
    user_id = _user_uuid(payload.user_id)
    store.save_credentials(user_id, payload.api_key, payload.engine_id)
    return CredentialsResponse(configured=store.has_credentials(user_id))
