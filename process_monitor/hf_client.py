import hashlib
from typing import Any, Optional, Protocol
import httpx
from pydantic import ValidationError
from .config import Settings, get_settings
from .schemas import ClassificationOutcome
from .utils.logging import get_logger

log = get_logger(__name__)

CANDIDATE_LABELS = ["COMPLIES", "DEVIATES", "UNCLEAR"]
HYPOTHESIS_TEMPLATE = "The action {} the guideline."


class TransportError(RuntimeError):
    """The classifier endpoint could not be reached or answered with an error."""


class Classifier(Protocol):
    def classify(self, action: str, guideline: str) -> ClassificationOutcome:
        ...


def build_payload(action: str, guideline: str) -> dict:
    return {
        "inputs": f"Guideline: {guideline}\nAction: {action}",
        "parameters": {
            "candidate_labels": list(CANDIDATE_LABELS),
            "hypothesis_template": HYPOTHESIS_TEMPLATE,
            "multi_label": False,
        },
    }


def top_outcome(body: Any) -> ClassificationOutcome:
    # Router format: [{"label": ..., "score": ...}, ...] ranked best first
    if isinstance(body, list):
        if not body or not isinstance(body[0], dict):
            return ClassificationOutcome()
        first = body[0]
        return ClassificationOutcome(label=first.get("label"), score=first.get("score"))
    # Legacy inference API: {"sequence": ..., "labels": [...], "scores": [...]}
    if isinstance(body, dict):
        labels = body.get("labels") or []
        scores = body.get("scores") or []
        return ClassificationOutcome(
            label=labels[0] if labels else None,
            score=scores[0] if scores else None,
        )
    return ClassificationOutcome()


class HuggingFaceClassifier:
    def __init__(
        self,
        endpoint: str,
        model: str,
        token: Optional[str] = None,
        timeout: float = 60,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.endpoint}/hf-inference/models/{self.model}"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def classify(self, action: str, guideline: str) -> ClassificationOutcome:
        payload = build_payload(action, guideline)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.post(self.url, json=payload, headers=self._headers())
                r.raise_for_status()
                body = r.json()
        except httpx.HTTPStatusError as e:
            log.warning(f"Classifier returned status={e.response.status_code} model={self.model}")
            raise TransportError(f"classifier_failed status={e.response.status_code}") from e
        except httpx.HTTPError as e:
            log.warning(f"Classifier request failed model={self.model} error={e!r}")
            raise TransportError(f"classifier_unreachable: {e}") from e
        except ValueError as e:
            raise TransportError("classifier_invalid_json") from e
        try:
            outcome = top_outcome(body)
        except ValidationError as e:
            log.warning(f"Classifier body not understood model={self.model} body={body!r}")
            raise TransportError("classifier_invalid_body") from e
        log.debug(f"Classified model={self.model} label={outcome.label} score={outcome.score}")
        return outcome


class MockClassifier:
    """Deterministic offline stand-in; the same pair always gets the same answer."""

    def classify(self, action: str, guideline: str) -> ClassificationOutcome:
        digest = hashlib.sha256(f"{guideline}\n{action}".encode("utf-8")).digest()
        label = CANDIDATE_LABELS[digest[0] % len(CANDIDATE_LABELS)]
        score = 0.34 + (digest[1] / 255) * 0.65
        return ClassificationOutcome(label=label, score=score)


def build_classifier(settings: Optional[Settings] = None) -> Classifier:
    settings = settings or get_settings()
    if settings.use_mock_classifier:
        log.info("Using mock classifier")
        return MockClassifier()
    return HuggingFaceClassifier(
        endpoint=settings.hf_endpoint,
        model=settings.hf_model,
        token=settings.hf_token,
        timeout=settings.hf_timeout_seconds,
    )
