"""Disease information enrichment.

``EnrichmentChain.enrich`` is total: providers are tried in order, each under
its own deadline, and the first complete DiseaseInfo wins. Provider errors
and timeouts are logged and swallowed; the static table and the generic
template at the end of the chain always produce an answer.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import quote

import requests

from app.errors import ConfigurationError, UpstreamError
from app.schemas import DiseaseInfo
from app.services import disease_table
from app.services.cache import DiseaseInfoCache
from app.utils import disease_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

DISEASE_INFO_PROMPT = """You are an agricultural plant pathology assistant.
Describe the crop condition "{label}" for a smallholder farmer.

Return STRICT JSON with exactly this shape:
{{
  "description": "...",
  "causes": ["..."],
  "symptoms": ["..."],
  "prevention": ["..."],
  "treatment": ["..."]
}}

Keep every list to 2-5 short, practical entries. Output only the JSON, no extra prose."""

ASK_SYSTEM_PROMPT = (
    "You are an agricultural expert helping farmers with plant diseases and crop care. "
    "Answer clearly and practically."
)


class Provider(ABC):
    name: str = "provider"

    @abstractmethod
    def try_fetch(self, disease_class: str) -> Optional[DiseaseInfo]:
        """Return disease information, or None when this provider has nothing."""
        ...


def first_success(candidates: Iterable[T], attempt: Callable[[T], Optional[Any]]) -> Optional[Any]:
    """Return the first non-None ``attempt(candidate)``."""
    for candidate in candidates:
        result = attempt(candidate)
        if result is not None:
            return result
    return None


def _label(disease_class: str) -> str:
    return disease_class.replace("_", " ").strip()


def _as_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = re.split(r"[;\n]+", value)
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if isinstance(item, (str, int, float)) and str(item).strip():
            items.append(str(item).strip())
    return items


def parse_disease_json(content: str) -> Optional[Dict[str, Any]]:
    """Strict JSON parse of a model reply; a ```json fence is unwrapped first."""
    text = content.strip()
    fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1).strip()
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    description = data.get("description")
    return {
        "description": description.strip() if isinstance(description, str) else "",
        "causes": _as_list(data.get("causes")),
        "symptoms": _as_list(data.get("symptoms")),
        "prevention": _as_list(data.get("prevention")),
        "treatment": _as_list(data.get("treatment")),
    }


def sections_from_reply(content: str) -> Dict[str, Any]:
    """Structured sections from a model reply: strict JSON, then text extraction."""
    sections = parse_disease_json(content)
    if sections is None:
        logger.info("Reply is not valid JSON, falling back to text extraction")
        sections = disease_text.extract_sections(content)
    for name, extractor in disease_text.KEYWORD_EXTRACTORS.items():
        if not sections[name]:
            sections[name] = extractor(content)
    if not sections["description"]:
        first_line = next((line.strip() for line in content.splitlines() if line.strip()), "")
        sections["description"] = first_line.strip("{}[]# ")
    return sections


class OpenRouterProvider(Provider):
    """Generative provider speaking the OpenAI-compatible chat completions API."""

    name = "OpenRouter"

    def __init__(self, api_key: Optional[str], base_url: str, model: str, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def complete(self, messages: List[Dict[str, str]], temperature: float = 0.2) -> str:
        if not self.api_key:
            raise ConfigurationError("OpenRouter API key is not configured.")
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json={"model": self.model, "messages": messages, "temperature": temperature},
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"OpenRouter request failed: {e}")
        if not response.ok:
            raise UpstreamError(f"OpenRouter returned HTTP {response.status_code}", status_code=response.status_code)
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise UpstreamError("OpenRouter returned an unexpected body")
        if not isinstance(content, str) or not content.strip():
            raise UpstreamError("OpenRouter returned an empty message")
        return content

    def try_fetch(self, disease_class: str) -> Optional[DiseaseInfo]:
        if not self.api_key:
            return None
        content = self.complete([
            {"role": "user", "content": DISEASE_INFO_PROMPT.format(label=_label(disease_class))},
        ])
        sections = sections_from_reply(content)
        if not sections["description"]:
            return None
        return DiseaseInfo(source=self.name, **sections)

    def ask(self, question: str, disease_class: Optional[str] = None) -> str:
        prompt = question
        if disease_class:
            prompt = f"Regarding the plant disease {_label(disease_class)}: {question}"
        return self.complete(
            [
                {"role": "system", "content": ASK_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.7,
        ).strip()


class WikipediaProvider(Provider):
    name = "Wikipedia"

    def __init__(self, summary_url: str, timeout: float = 15.0, session: Optional[requests.Session] = None, user_agent: str = "CropScan/1.0"):
        self.summary_url = summary_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.user_agent = user_agent

    def try_fetch(self, disease_class: str) -> Optional[DiseaseInfo]:
        title = quote(_label(disease_class).replace(" ", "_"), safe="")
        if not title:
            return None
        response = self.session.get(
            f"{self.summary_url}/{title}",
            headers={"Accept": "application/json", "User-Agent": self.user_agent},
            timeout=self.timeout,
        )
        if response.status_code == 404:
            return None
        if not response.ok:
            raise UpstreamError(f"Wikipedia returned HTTP {response.status_code}", status_code=response.status_code)
        data = response.json()
        if not isinstance(data, dict) or data.get("type") == "disambiguation":
            return None
        extract = data.get("extract")
        if not isinstance(extract, str) or not extract.strip():
            return None
        return DiseaseInfo(source=self.name, **disease_text.summary_to_sections(extract))


class StaticTableProvider(Provider):
    name = disease_table.STATIC_SOURCE

    def try_fetch(self, disease_class: str) -> Optional[DiseaseInfo]:
        return disease_table.lookup(disease_class)


class EnrichmentChain:
    def __init__(self, providers: Sequence[Provider], timeout: float = 15.0, cache: Optional[DiseaseInfoCache] = None):
        self.providers = list(providers)
        self.timeout = timeout
        self.cache = cache

    def enrich(self, disease_class: str) -> DiseaseInfo:
        if self.cache is not None:
            cached = self.cache.get(disease_class)
            if cached is not None and cached.is_complete():
                return cached

        info = first_success(self.providers, lambda provider: self._attempt(provider, disease_class))
        if info is None:
            logger.info(f"No provider had information for {disease_class}, using default")
            return disease_table.default_info(disease_class)

        if self.cache is not None:
            self.cache.set(disease_class, info)
        return info

    def _attempt(self, provider: Provider, disease_class: str) -> Optional[DiseaseInfo]:
        # A worker thread per call so a hung provider cannot hold the job past its deadline
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"enrich-{provider.name}")
        try:
            future = executor.submit(provider.try_fetch, disease_class)
            info = future.result(timeout=self.timeout)
        except FutureTimeout:
            logger.warning(f"{provider.name} timed out after {self.timeout}s for {disease_class}")
            return None
        except Exception as e:
            logger.warning(f"{provider.name} failed for {disease_class}: {e}")
            return None
        finally:
            executor.shutdown(wait=False)

        if info is None:
            return None
        if not info.is_complete():
            logger.warning(f"{provider.name} returned incomplete information for {disease_class}")
            return None
        logger.info(f"Disease information for {disease_class} from {provider.name}")
        return info
