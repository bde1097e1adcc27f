"""
Load endpoint — map rows to documents and write them to the store.
"""

from fastapi import APIRouter, Depends

from docloader.api.dependencies import get_load_service
from docloader.schemas.store_schema import LoadRequest, LoadResponse
from docloader.services.load_service import LoadService

router = APIRouter(prefix="/load", tags=["Load"])


@router.post(
    "/",
    response_model=LoadResponse,
    summary="Load rows into the configured collection",
    description=(
        "Maps each row onto a document using the configured field mapping, "
        "inserts (batched) or upserts it, then applies the configured "
        "indexes. Rows are written in the order given."
    ),
)
async def load_rows(
    req: LoadRequest,
    service: LoadService = Depends(get_load_service),
) -> LoadResponse:
    return await service.load(req.rows)
