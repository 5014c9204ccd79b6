from __future__ import annotations


class OllamaClient:
    def __init__(
        self,
        endpoint: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        temperature: float | None = None,
        keep_alive: int | None = None,
    ):
        if None in (endpoint, model, timeout_seconds, temperature, keep_alive):
            from docbot.core.config import settings

            endpoint = settings.LLM_ENDPOINT if endpoint is None else endpoint
            model = settings.LLM_MODEL if model is None else model
            timeout_seconds = timeout_seconds or settings.REQUEST_TIMEOUT_SECONDS
            temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
            keep_alive = settings.LLM_KEEP_ALIVE if keep_alive is None else keep_alive
        self.endpoint = str(endpoint or "")
        self.model = str(model or "")
        self.timeout_seconds = float(timeout_seconds)
        self.temperature = float(temperature)
        self.keep_alive = int(keep_alive)

    def is_configured(self) -> bool:
        return bool(self.endpoint and self.model)

    def generate(self, prompt: str, *, keep_alive: int | None = None) -> dict:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "keep_alive": self.keep_alive if keep_alive is None else keep_alive,
            "options": {"temperature": self.temperature, "top_p": 1},
        }
        import httpx

        with httpx.Client(timeout=self.timeout_seconds) as client:
            response = client.post(self.endpoint, json=payload)
            response.raise_for_status()
            return response.json()

    def generate_text(self, prompt: str, *, keep_alive: int | None = None) -> str:
        payload = self.generate(prompt, keep_alive=keep_alive)
        return str(payload.get("response") or "").strip()
