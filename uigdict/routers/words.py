from __future__ import annotations
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..dictionary import DictionaryService, UpstreamStatusError, coerce_positive_int, service
from ..schemas import ErrorResponse, GlossaryResponse, WordSearchResponse

logger = logging.getLogger(__name__)

router = APIRouter()

OPTIONAL_PAGINATION_FIELDS = ('limit', 'totalPages', 'hasNextPage')

def get_dictionary_service() -> DictionaryService:
    return service

def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message}, headers=headers)

@router.get('', response_model=GlossaryResponse)
async def list_words(dictionary: DictionaryService = Depends(get_dictionary_service)):
    words = await dictionary.list_words()
    return {'docs': words}

# Every method is routed here so non-GET requests get the JSON error body
@router.api_route(
    '/search',
    methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
    responses={
        200: {'model': WordSearchResponse},
        400: {'model': ErrorResponse},
        405: {'model': ErrorResponse},
        500: {'model': ErrorResponse},
    },
)
async def search_words(
    request: Request,
    q: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    dictionary: DictionaryService = Depends(get_dictionary_service),
    settings: Settings = Depends(get_settings),
):
    if request.method != 'GET':
        return _error(405, 'Method Not Allowed', headers={'Allow': 'GET'})

    search_term = q.strip() if isinstance(q, str) else None
    page_no = coerce_positive_int(page, 1)
    page_size = coerce_positive_int(
        limit, settings.search_default_page_size, min_value=1, max_value=settings.search_max_page_size
    )
    if not search_term:
        return _error(400, 'Missing query `q`')

    try:
        result = await dictionary.search(search_term, page=page_no, limit=page_size)
    except UpstreamStatusError as exc:
        logger.warning('CMS search for %r failed with status %s', search_term, exc.status_code)
        return _error(exc.status_code, f'CMS request failed with {exc.status_code}')
    except (httpx.HTTPError, ValueError):
        logger.exception('Failed to fetch words from CMS')
        return _error(500, 'Failed to fetch words from CMS')

    content = result.model_dump(mode='json')
    # Pagination hints the CMS did not send stay absent
    for key in OPTIONAL_PAGINATION_FIELDS:
        if content.get(key) is None:
            content.pop(key, None)
    return JSONResponse(status_code=200, content=content)
