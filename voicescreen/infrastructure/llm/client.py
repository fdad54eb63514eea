"""
Gemini REST clients for LLM interactions.

Two transports are supported: the Generative Language API with an API key,
and Vertex AI with a service account or application default credentials.
Both return the raw model text; callers own the parsing policy.
"""
import json
import logging
from typing import Optional, Dict, Any, List

import requests
import google.auth
import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS, Config
from ...errors import TransportError, TransportTimeoutError, RateLimitError, JudgmentError
from ...interview.schemas import parse_json_object

logger = logging.getLogger("llm_client")

RATE_LIMIT_MARKERS = ("429", "quota", "too many requests", "resource_exhausted")


def _generation_config(temperature: float, max_output_tokens: int,
                       response_mime_type: Optional[str] = None,
                       top_k: Optional[int] = None,
                       top_p: Optional[float] = None,
                       stop_sequences: Optional[List[str]] = None) -> Dict[str, Any]:
    config: Dict[str, Any] = {
        "temperature": float(temperature),
        "maxOutputTokens": int(max_output_tokens),
    }
    if response_mime_type:
        config["responseMimeType"] = response_mime_type
    if top_k is not None:
        config["topK"] = int(top_k)
    if top_p is not None:
        config["topP"] = float(top_p)
    if stop_sequences:
        config["stopSequences"] = list(stop_sequences)
    return config


def _parse_response_text(resp_json: Dict[str, Any]) -> str:
    """
    Parse response JSON to extract text content.
    Tries the Gemini candidates schema first, then falls back to alternatives.
    """
    cands = resp_json.get("candidates") or []
    if cands and isinstance(cands[0], dict):
        content = cands[0].get("content") or {}
        parts = content.get("parts") or []
        if isinstance(parts, list):
            # Concatenate every text part
            texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)
        # Some responses put text directly in content
        if isinstance(content, dict) and isinstance(content.get("text"), str):
            return content["text"]

    # Direct text fallback
    if isinstance(resp_json.get("text"), str):
        return resp_json["text"]

    raise JudgmentError("LLM response contained no text", raw=json.dumps(resp_json, separators=(",", ":")))


class _GeminiRestBase:
    """Shared request/response handling for both Gemini transports."""

    def __init__(self, model: str = MODEL_NAME, timeout: int = LLM_TIMEOUT):
        self.model = model
        self.timeout = timeout

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def generate_content(
        self,
        prompt_text: str,
        temperature: float = 0.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        response_mime_type: Optional[str] = None,
        top_k: Optional[int] = None,
        top_p: Optional[float] = None,
        stop_sequences: Optional[List[str]] = None,
    ) -> str:
        """
        Generate content and return the model text.

        Raises:
            RateLimitError: HTTP 429 or a quota message from the service
            TransportTimeoutError: The request timed out
            TransportError: Any other transport or HTTP failure
            JudgmentError: The response carried no text
        """
        body: Dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt_text}],
                }
            ],
            "generationConfig": _generation_config(
                temperature, max_output_tokens, response_mime_type, top_k, top_p, stop_sequences
            ),
        }

        try:
            resp = requests.post(self._endpoint(), headers=self._headers(), json=body, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransportTimeoutError(f"LLM request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(f"LLM request failed: {e}") from e

        if resp.status_code >= 400:
            text = resp.text or ""
            lowered = text.lower()
            if resp.status_code == 429 or any(m in lowered for m in RATE_LIMIT_MARKERS[1:]):
                raise RateLimitError(f"LLM rate limited {resp.status_code}: {text}", status=resp.status_code)
            raise TransportError(f"LLM REST error {resp.status_code}: {text}", status=resp.status_code)

        try:
            resp_json = resp.json()
        except ValueError as e:
            raise JudgmentError("LLM response was not JSON", raw=resp.text) from e
        return _parse_response_text(resp_json)

    def generate_json(self, prompt: str, temperature: float = 0.0,
                      max_output_tokens: int = MAX_OUTPUT_TOKENS) -> Dict[str, Any]:
        """
        Generate a JSON object response with defensive parsing.
        Automatically appends instruction to respond with JSON only.
        """
        prompt_json = prompt.strip() + "\n\nRespond ONLY with minified JSON."
        logger.debug("Sending JSON prompt to LLM...")

        text = self.generate_content(prompt_json, temperature=temperature, max_output_tokens=max_output_tokens)
        logger.debug("Raw LLM output: %s", repr(text))

        try:
            return parse_json_object(text)
        except ValueError as e:
            raise JudgmentError(str(e), raw=text) from e


class GeminiRestClient(_GeminiRestBase):
    """Generative Language API client authenticated with an API key."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, api_key: str, model: str = MODEL_NAME, timeout: int = LLM_TIMEOUT):
        super().__init__(model=model, timeout=timeout)
        self.api_key = api_key

    def _endpoint(self) -> str:
        return f"{self.BASE_URL}/models/{self.model}:generateContent"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }


class VertexRestClient(_GeminiRestBase):
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT):
        super().__init__(model=model, timeout=timeout)
        self.project = project
        self.location = location
        self.credentials_json = credentials_json
        self.base_url = f"https://{self.location}-aiplatform.googleapis.com/v1"
        self.model_resource = f"projects/{self.project}/locations/{self.location}/publishers/google/models/{self.model}"
        self._creds = None

    def _refresh_token(self):
        """Refresh the OAuth token for API calls."""
        if self._creds is None:
            if self.credentials_json:
                self._creds = service_account.Credentials.from_service_account_file(
                    self.credentials_json,
                    scopes=["https://www.googleapis.com/auth/cloud-platform"],
                )
            else:
                self._creds, _ = google.auth.default(scopes=["https://www.googleapis.com/auth/cloud-platform"])

        auth_req = google.auth.transport.requests.Request()
        self._creds.refresh(auth_req)

    def _ensure_token(self):
        """Ensure we have a valid token, refreshing if needed."""
        if self._creds is None or not self._creds.valid:
            try:
                self._refresh_token()
            except google.auth.exceptions.GoogleAuthError as e:
                raise TransportError(f"Could not obtain Google credentials: {e}") from e

    def _endpoint(self) -> str:
        return f"{self.base_url}/{self.model_resource}:generateContent"

    def _headers(self) -> Dict[str, str]:
        self._ensure_token()
        return {
            "Authorization": f"Bearer {self._creds.token}",
            "Content-Type": "application/json",
        }


def build_llm_client(config: Config) -> Optional[_GeminiRestBase]:
    """
    Build the configured judgment client, or None when nothing is configured.

    An API key takes precedence over a Google Cloud project.
    """
    if config.gemini_api_key:
        logger.info(f"Using Gemini API with model {config.model_name}")
        return GeminiRestClient(api_key=config.gemini_api_key, model=config.model_name)
    if config.google_cloud_project:
        logger.info(f"Using Vertex AI project {config.google_cloud_project} with model {config.model_name}")
        return VertexRestClient(
            project=config.google_cloud_project,
            location=config.vertex_location,
            model=config.model_name,
            credentials_json=config.google_application_credentials,
        )
    logger.warning("No judgment service configured; fallback decisions and scoring will be used")
    return None
