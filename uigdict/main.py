from __future__ import annotations
import logging
from contextlib import asynccontextmanager

import httpx
import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .client import SearchClient
from .config import get_settings
from .dictionary import service as dict_service
from .managers.search import SearchManager
from .routers import words

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await search_http.aclose()
    await dict_service.aclose()

# Socket.IO server (ASGI)
sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins='*' if '*' in settings.cors_origin_list else settings.cors_origin_list)
app = FastAPI(title="UIG Dictionary Server", version="0.1.0", lifespan=lifespan)

# Mount Socket.IO ASGI application
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)

# CORS for REST
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(words.router, prefix='/api/words', tags=['words'])

# Socket sessions search through the proxy above; in-process unless pointed elsewhere
if settings.search_api_url:
    search_http = httpx.AsyncClient(base_url=settings.search_api_url, timeout=settings.upstream_timeout)
else:
    search_http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url='http://uigdict')

searches = SearchManager(
    sio,
    SearchClient(search_http),
    page_size=settings.search_default_page_size,
    debounce=settings.debounce_seconds,
    cms_base_url=settings.cms_base_url,
)

@app.get('/health')
async def health():
    return { 'ok': True, 'cms': dict_service.base_url }

# Socket.IO Events
@sio.event
async def connect(sid, environ, auth=None):
    searches.get_or_create(sid)
    await searches.emit_state(sid)

@sio.event
async def disconnect(sid, reason=None):
    # Pending fetches for this client must not touch its state any more
    searches.close(sid)

@sio.on('search:query')
async def search_query(sid, query):
    if not isinstance(query, str):
        logger.debug('Ignoring non-text query from %s', sid)
        return
    await searches.set_query(sid, query)

@sio.on('search:loadMore')
async def search_load_more(sid):
    await searches.load_more(sid)

@sio.on('search:reset')
async def search_reset(sid):
    await searches.reset(sid)

@sio.on('search:state')
async def search_state(sid):
    await searches.emit_state(sid)

# Export ASGI app for uvicorn
application = asgi_app

# For local running: uvicorn uigdict.main:application --reload --host 0.0.0.0 --port 8000
