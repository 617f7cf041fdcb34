"""
Wikipedia search generator.
Answers with the intro extracts of the best matching Wikipedia articles.
No API key required.
"""

import httpx
import logging
import re
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .base import GenerationRequest, GenerationResponse, GenerationStatus, ResponseGenerator

logger = logging.getLogger(__name__)

API_URL = "https://en.wikipedia.org/w/api.php"
SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/Wikipedia"
USER_AGENT = "ChatRelay/1.0 (https://github.com/chatrelay)"
EXTRACT_LIMIT = 180

_GREETING = re.compile(r"^(hi|hello|hey|greetings),?\s*", re.IGNORECASE)

_CONVERSATIONAL_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"can you tell me about\s+(.*)",
        r"tell me about\s+(.*)",
        r"i want to know about\s+(.*)",
        r"i'd like to learn about\s+(.*)",
        r"please explain\s+(.*)",
        r"explain\s+(.*)",
        r"what do you know about\s+(.*)",
        r"give me information about\s+(.*)",
        r"information about\s+(.*)",
        r"search for\s+(.*)",
        r"look up\s+(.*)",
        r"find\s+(.*)",
    )
]

_QUESTION_PREFIXES = (
    "what is ", "what are ", "who is ", "who are ", "where is ", "where are ",
    "how does ", "how do ", "how is ", "when was ", "when were ", "when is ",
    "why is ", "why are ", "why do ", "why does ", "which is ", "which are ",
)

_ARTICLES = ("the ", "a ", "an ")

TOPIC_MAPPINGS = {
    "computer scientist": "Computer scientist",
    "matter": "Matter (physics)",
    "ai": "Artificial intelligence",
    "artificial intelligence": "Artificial intelligence",
    "machine learning": "Machine learning",
    "neural network": "Neural network",
    "neural networks": "Neural network",
    "deep learning": "Deep learning",
    "quantum computing": "Quantum computing",
    "climate change": "Climate change",
    "global warming": "Global warming",
    "covid": "COVID-19",
    "coronavirus": "COVID-19",
    "space": "Outer space",
    "universe": "Universe",
    "solar system": "Solar System",
    "black hole": "Black hole",
    "black holes": "Black hole",
    "dna": "DNA",
    "rna": "RNA",
    "evolution": "Evolution",
    "photosynthesis": "Photosynthesis",
    "gravity": "Gravity",
    "einstein": "Albert Einstein",
    "newton": "Isaac Newton",
    "shakespeare": "William Shakespeare",
    "leonardo da vinci": "Leonardo da Vinci",
}


def _strip_article(text: str) -> str:
    for article in _ARTICLES:
        if text.startswith(article) and len(text) > len(article):
            return text[len(article):]
    return text


def clean_search_query(query: str) -> str:
    """Reduce a chat message to a Wikipedia search term."""
    clean = _GREETING.sub("", query.lower().strip())

    for pattern in _CONVERSATIONAL_PATTERNS:
        if pattern.search(clean):
            clean = pattern.sub(r"\1", clean).strip()
            break

    for prefix in _QUESTION_PREFIXES:
        if clean.startswith(prefix):
            clean = clean[len(prefix):].strip()
            break

    clean = clean.replace("?", "").replace("!", "").replace(",", "").strip()
    clean = _strip_article(clean)

    if clean in TOPIC_MAPPINGS:
        return TOPIC_MAPPINGS[clean]
    if len(clean) < 2:
        return "Wikipedia"
    return clean[0].upper() + clean[1:]


def alternative_queries(query: str) -> List[str]:
    """Looser search terms to try when the cleaned query finds nothing."""
    clean = query.lower().strip()
    alternatives: List[str] = []

    for question in ("what is", "what are", "who is", "who are", "where is", "when was", "how does", "why is"):
        if clean.startswith(question + " "):
            rest = _strip_article(clean[len(question) + 1:].strip())
            if rest:
                alternatives.append(rest)
                alternatives.append(rest[0].upper() + rest[1:])
            break

    if "computer scientist" in clean:
        alternatives += ["Computer science", "Computer scientist", "Alan Turing", "Ada Lovelace"]
    elif "scientist" in clean:
        alternatives += ["Scientist", "Science", "Albert Einstein", "Marie Curie"]
    elif "programmer" in clean or "developer" in clean:
        alternatives += ["Computer programming", "Software development", "Programming"]

    unique: List[str] = []
    for alternative in alternatives:
        if alternative.strip() and alternative not in unique:
            unique.append(alternative)
    return unique


def no_results_message(query: str) -> str:
    """Friendly reply with topical suggestions when nothing matched."""
    lowered = query.lower()
    if any(word in lowered for word in ("computer", "programming", "software")):
        suggestions = ["Computer science", "Programming", "Software engineering", "Alan Turing"]
    elif "scientist" in lowered:
        suggestions = ["Science", "Albert Einstein", "Marie Curie", "Isaac Newton"]
    elif "history" in lowered:
        suggestions = ["History", "World War II", "Ancient Rome", "Renaissance"]
    else:
        suggestions = ["Science", "Technology", "History", "Geography"]

    return (
        f"I couldn't find any Wikipedia articles for \"{query}\".\n"
        f"Try searching for: {' • '.join(suggestions)}\n"
        "Tip: check your spelling, use more specific terms or try a broader topic."
    )


def format_results(query: str, results: List[Dict[str, str]]) -> str:
    """Render search results as chat text."""
    lines = [f"Wikipedia results for \"{query}\":"]
    for i, result in enumerate(results, 1):
        extract = result.get("extract", "")
        if len(extract) > EXTRACT_LIMIT:
            extract = extract[:EXTRACT_LIMIT] + "..."
        lines.append(f"{i}. {result['title']} - {extract}" if extract else f"{i}. {result['title']}")
        lines.append(f"Read more: {result['url']}")
    return "\n".join(lines)


class WikipediaSearchGenerator(ResponseGenerator):
    """Search-based generator using the public MediaWiki APIs."""

    name = "wikipedia"

    def __init__(self, timeout: float = 30.0, max_results: int = 3):
        super().__init__()
        self.timeout = timeout
        self.max_results = max_results

    def _get_headers(self) -> Dict[str, str]:
        return {"User-Agent": USER_AGENT}

    async def initialize(self) -> None:
        self._status = "Initializing Wikipedia Search Engine..."
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(SUMMARY_URL, headers=self._get_headers())
            if resp.is_success:
                self._is_ready = True
                self._status = "Ready - Wikipedia Search Engine"
                logger.info("Wikipedia search generator initialized")
            else:
                self._is_ready = False
                self._status = "Error: Cannot connect to Wikipedia API"
                logger.error(f"Wikipedia API probe failed with status {resp.status_code}")
        except Exception as e:
            self._is_ready = False
            self._status = f"Error: {e}"
            logger.error(f"Error initializing Wikipedia search generator: {e}", exc_info=True)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        start_time = time.time()
        logger.info(f"Processing Wikipedia search query: {request.prompt[:100]}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                strategy = "direct"
                results = await self._search(client, clean_search_query(request.prompt))
                if not results:
                    strategy = "alternative"
                    for alternative in alternative_queries(request.prompt):
                        logger.debug(f"Trying alternative search query: {alternative}")
                        results = await self._search(client, alternative)
                        if results:
                            break
        except httpx.TimeoutException:
            return GenerationResponse.failed(
                GenerationStatus.FAULT, f"Wikipedia request timed out after {self.timeout}s",
                (time.time() - start_time) * 1000,
            )
        except (httpx.HTTPError, ValueError) as e:
            return GenerationResponse.failed(
                GenerationStatus.FAULT, f"Wikipedia search failed: {e}", (time.time() - start_time) * 1000
            )

        elapsed_ms = (time.time() - start_time) * 1000
        metadata: Dict[str, Any] = {
            "search_query": request.prompt,
            "results_count": len(results),
            "provider": "Wikipedia",
            "search_strategy": strategy,
            "search_time_ms": round(elapsed_ms, 2),
        }
        if not results:
            return GenerationResponse.ok(no_results_message(request.prompt), elapsed_ms, metadata)
        return GenerationResponse.ok(format_results(request.prompt, results), elapsed_ms, metadata)

    async def _search(self, client: httpx.AsyncClient, query: str) -> List[Dict[str, str]]:
        """OpenSearch for titles, then enrich each hit with its intro extract."""
        resp = await client.get(API_URL, params={
            "action": "opensearch",
            "search": query,
            "limit": self.max_results,
            "namespace": 0,
            "format": "json",
        }, headers=self._get_headers())
        resp.raise_for_status()
        data = resp.json()

        if not isinstance(data, list) or len(data) < 4:
            return []

        titles, descriptions, urls = data[1], data[2], data[3]
        results = []
        for i, title in enumerate(titles[:self.max_results]):
            if not title:
                continue
            description = descriptions[i] if i < len(descriptions) else ""
            url = urls[i] if i < len(urls) else f"https://en.wikipedia.org/wiki/{quote(title)}"
            extract = await self._fetch_extract(client, title)
            results.append({"title": title, "extract": extract or description or "", "url": url})

        logger.info(f"Found {len(results)} Wikipedia results for query: {query}")
        return results

    async def _fetch_extract(self, client: httpx.AsyncClient, title: str) -> Optional[str]:
        try:
            resp = await client.get(API_URL, params={
                "action": "query",
                "format": "json",
                "titles": title,
                "prop": "extracts",
                "exintro": "true",
                "explaintext": "true",
            }, headers=self._get_headers())
            if not resp.is_success:
                return None
            pages = (resp.json().get("query") or {}).get("pages") or {}
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Could not fetch extract for {title}: {e}")
            return None

        for page in pages.values():
            extract = (page or {}).get("extract")
            if extract:
                return extract.strip()
        return None
