from __future__ import annotations

from typing import Optional, Protocol

from src.maternity.config import settings


class RiskLLMBackend(Protocol):
    """Protocol for the text-completion model behind AI risk assessments."""

    def complete(self, prompt: str) -> str:  # pragma: no cover - interface
        """Return the model's raw text reply for ``prompt``."""
        raise NotImplementedError


class DemoRiskLLMBackend:
    """Deterministic backend used for tests and deployments without an LLM.

    The reply contains no JSON object, so callers always take their
    threshold-based fallback path.
    """

    def complete(self, prompt: str) -> str:
        return "AI analysis is not configured for this deployment."


class OpenAIRiskLLMBackend:
    """Backend that sends prompts to an LLM via the OpenAI Python client.

    Requires OPENAI_API_KEY and uses the model named by LLM_MODEL.
    """

    def __init__(self, model: Optional[str] = None) -> None:
        self._model = model or settings.llm_model

    def complete(self, prompt: str) -> str:  # pragma: no cover - external service
        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY must be set to use OpenAIRiskLLMBackend")

        from openai import OpenAI

        client = OpenAI(api_key=api_key)
        response = client.responses.create(
            model=self._model,
            input=[
                {
                    "role": "system",
                    "content": (
                        "You are a prenatal care assistant. You never diagnose; you "
                        "summarise risk and advise when to contact a clinician. "
                        "Answer with a single JSON object and nothing else."
                    ),
                },
                {"role": "user", "content": prompt},
            ],
        )

        for output in response.output:
            for item in getattr(output, "content", None) or []:
                if getattr(item, "type", "") == "output_text" and getattr(item, "text", None):
                    return item.text
        return ""


demo_risk_llm_backend = DemoRiskLLMBackend()


def get_risk_llm_backend_from_env() -> RiskLLMBackend:
    """Select a backend based on RISK_LLM_BACKEND.

    - RISK_LLM_BACKEND=llm → OpenAIRiskLLMBackend
    - Anything else (or unset) → DemoRiskLLMBackend
    """

    if settings.risk_llm_backend.lower() == "llm":
        return OpenAIRiskLLMBackend()
    return demo_risk_llm_backend
