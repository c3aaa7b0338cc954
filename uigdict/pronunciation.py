from __future__ import annotations
from typing import Optional, Union

from .config import get_settings
from .schemas import PronunciationMedia

def _normalize_url(path: Optional[str], base_url: str) -> Optional[str]:
    if not path:
        return None
    if path.startswith('http'):
        return path
    if path.startswith('/'):
        normalized = path
    elif path.startswith('media/'):
        normalized = f'/{path}'
    else:
        normalized = f'/media/{path}'
    return f'{base_url}{normalized}'

def resolve_pronunciation_url(pronunciation: Optional[Union[PronunciationMedia, str]], base_url: Optional[str] = None) -> Optional[str]:
    """Turn a word's pronunciation field into a playable URL on the CMS host.

    Structured media prefer ``url`` over ``filename``.
    """
    if not pronunciation:
        return None
    base = (base_url or get_settings().cms_base_url).rstrip('/')
    if isinstance(pronunciation, str):
        return _normalize_url(pronunciation, base)
    if pronunciation.url:
        return _normalize_url(pronunciation.url, base)
    if pronunciation.filename:
        return _normalize_url(pronunciation.filename, base)
    return None
