from __future__ import annotations
from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional, Union

class PronunciationMedia(BaseModel):
    model_config = ConfigDict(extra='allow', frozen=True)

    id: Optional[str] = None
    filename: Optional[str] = None
    mimeType: Optional[str] = None
    filesize: Optional[int] = None
    url: Optional[str] = None

    @field_validator('id', mode='before')
    @classmethod
    def _coerce_id(cls, value):
        return None if value is None else str(value)

class Word(BaseModel):
    # Upstream records may carry extra CMS fields (createdAt, updatedAt, ...)
    model_config = ConfigDict(extra='allow', frozen=True)

    id: str
    word_uyghur: str = ''
    word_english: str = ''
    word_turkish: str = ''
    pronunciation: Optional[Union[PronunciationMedia, str]] = None

    @field_validator('id', mode='before')
    @classmethod
    def _coerce_id(cls, value):
        # Payload uses numeric ids on SQL adapters, strings on Mongo
        return str(value)

class WordSearchResponse(BaseModel):
    docs: List[Word] = []
    total: int
    page: int
    limit: Optional[int] = None
    totalPages: Optional[int] = None
    hasNextPage: Optional[bool] = None

class GlossaryResponse(BaseModel):
    docs: List[Word] = []

class ErrorResponse(BaseModel):
    error: str

class WordView(BaseModel):
    word: Word
    pronunciationUrl: Optional[str] = None

class SearchState(BaseModel):
    query: str
    debouncedQuery: str
    words: List[WordView] = []
    total: int = 0
    size: int = 1
    error: Optional[str] = None
    isLoadingInitialData: bool = False
    isLoadingMore: bool = False
    isEmpty: bool = False
    isReachingEnd: bool = True
