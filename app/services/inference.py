"""Client for the hosted crop disease classification workflow.

The client never retries. Every failure is raised as a classified
DetectionError and the job queue decides what to do with it:

    missing API key             ConfigurationError      not retryable
    connect/read timeout        InferenceTimeoutError   retryable
    connection failure          UpstreamError           retryable
    HTTP 5xx, 408, 429          UpstreamError           retryable
    other HTTP 4xx              UpstreamError           not retryable
    2xx without a JSON body     UpstreamError           not retryable

Any JSON body on a 2xx is returned as is, even `{}` or `[]`; the normalizer
turns a body without predictions into an empty result.
"""

import logging
from typing import Any, Optional

import requests

from app.errors import ConfigurationError, InferenceTimeoutError, InvalidInput, UpstreamError

logger = logging.getLogger(__name__)


class InferenceClient:
    def __init__(self, api_key: Optional[str], endpoint: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def classify(self, image_url: str) -> Any:
        """POST the image URL to the workflow and return the raw JSON body."""
        if not self.api_key:
            raise ConfigurationError("Roboflow API key is not configured.")
        if not self.endpoint:
            raise ConfigurationError("Roboflow endpoint is not configured.")
        if not image_url:
            raise InvalidInput("Image URL is required.")

        payload = {
            "api_key": self.api_key,
            "inputs": {
                "image": {"type": "url", "value": image_url},
            },
        }

        logger.info(f"Making inference call to: {self.endpoint}")
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise InferenceTimeoutError(f"Inference did not respond within {self.timeout}s: {e}")
        except requests.RequestException as e:
            raise UpstreamError(f"Inference request failed: {e}")

        if not response.ok:
            detail = _error_detail(response)
            raise UpstreamError(
                f"Inference returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise UpstreamError("No data returned from inference.", status_code=response.status_code, retryable=False)

        logger.info("Inference call successful")
        return data


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)[:200]
    return str(body)[:200]
