from fastapi import APIRouter, Depends

from orgmirror.api.security import get_api_key
from orgmirror.controllers.mirror_controller import MirrorController

router = APIRouter()


@router.get("/")
async def welcome():
    return {"message": "The orgmirror API is live!"}


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/api/mirror", dependencies=[Depends(get_api_key)])
def get_mirror():
    return MirrorController.index()


@router.post("/api/mirror/resync/{resource}", dependencies=[Depends(get_api_key)])
def resync(resource: str):
    return MirrorController.resync(resource)
