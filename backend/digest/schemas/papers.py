from typing import List, Optional, Union

from pydantic import BaseModel, Field


class Paper(BaseModel):
    title: str = "No title"
    link: str = "Not available"
    abstract: str = "No abstract available"
    authors: str = "N/A"
    publish_year: Union[int, str] = "N/A"
    citation_count: int = 0
    pdf_link: Optional[str] = None


class SearchRequest(BaseModel):
    keyword: str = ""
    limit: int = 30


class SearchResponse(BaseModel):
    success: bool = True
    keyword: str
    total_results: int
    papers: List[Paper] = Field(default_factory=list)
    message: Optional[str] = None


class TrendingRequest(BaseModel):
    keywords: List[str] = Field(default_factory=list)
    limit: int = 3
    year_from: int = 2020


class KeywordPapers(BaseModel):
    keyword: str
    papers: List[Paper] = Field(default_factory=list)
    error: Optional[str] = None


class TrendingResponse(BaseModel):
    success: bool = True
    year_from: int
    limit: int
    results: List[KeywordPapers] = Field(default_factory=list)


class TrendingTopic(BaseModel):
    topic: str
    queries: List[str]


class TrendingTopicsResponse(BaseModel):
    success: bool = True
    topics: List[TrendingTopic] = Field(default_factory=list)
