"""
Web search service using the Brave Search API.
Supplies ranked {title, link, snippet} results used to enrich the system prompt.
"""
from typing import Any, Dict, List, Optional

import httpx

from config import Config
from models.chat_models import SearchHit
from utils.html_parser import HTMLParser
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


class SearchService:
    """Best-effort web lookup. Every failure degrades to no results."""

    def __init__(self, result_count: Optional[int] = None):
        """
        Args:
            result_count: Maximum number of results to return (default from Config)
        """
        self.result_count = result_count or Config.DEFAULT_SEARCH_RESULTS_COUNT

    def _get_search_params(self, query: str) -> Dict[str, Any]:
        return {
            "q": query,
            "count": self.result_count,
        }

    async def search(self, query: str) -> Optional[List[SearchHit]]:
        """
        Search the web for query.

        Args:
            query: Search query string

        Returns:
            Ranked results (possibly empty), or None when the lookup failed
        """
        if not Config.BRAVE_SEARCH_API_KEY:
            app_logger.warning("BRAVE_SEARCH_API_KEY is not configured, skipping web search")
            return None

        try:
            client = HTTPClientManager.get_search_client()
            response = await client.get(
                Config.BRAVE_SEARCH_URL,
                headers={
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip",
                    "X-Subscription-Token": Config.BRAVE_SEARCH_API_KEY
                },
                params=self._get_search_params(query)
            )

            if response.status_code == 200:
                return self._process_search_results(response.json())
            elif response.status_code == 401:
                app_logger.error("Search failed: invalid BRAVE_SEARCH_API_KEY")
            elif response.status_code == 429:
                app_logger.warning("Search failed: API rate limit exceeded")
            else:
                app_logger.error(f"Search API error (status {response.status_code})")
            return None

        except httpx.TimeoutException as e:
            app_logger.error(f"Search timed out: {str(e)}")
            return None
        except httpx.RequestError as e:
            app_logger.error(f"Search request failed: {str(e)}")
            return None
        except Exception as e:
            app_logger.error(f"Unexpected search error: {str(e)}")
            return None

    def _process_search_results(self, data: dict) -> List[SearchHit]:
        """Map Brave web results onto SearchHit, keeping rank order."""
        web_results = (data.get("web") or {}).get("results") or []

        hits = []
        for result in web_results[:self.result_count]:
            link = result.get("url")
            if not link:
                continue
            hits.append(SearchHit(
                title=HTMLParser.strip_tags(result.get("title")),
                link=link,
                snippet=HTMLParser.strip_tags(result.get("description")),
            ))

        app_logger.info(f"Search returned {len(hits)} results")
        return hits
