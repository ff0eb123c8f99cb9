from fastapi import APIRouter, Depends

from tripdetails.auth import get_current_user
from tripdetails.context import get_capabilities
from tripdetails.models import User
from tripdetails.services.schema_probe import SchemaCapabilities

router = APIRouter(prefix="/api/meta", tags=["meta"])


@router.get("/schema")
def schema_capabilities(
    caps: SchemaCapabilities = Depends(get_capabilities),
    _user: User = Depends(get_current_user),
):
    return {"ok": True, **caps.describe()}
