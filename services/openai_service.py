import json
import logging

import requests

logger = logging.getLogger(__name__)


class OpenAIService:
    """Thin HTTP client for the OpenAI chat, embedding and speech endpoints."""

    def __init__(self, api_key, base_url="https://api.openai.com/v1",
                 chat_model="gpt-4o-mini",
                 embedding_model="text-embedding-3-small",
                 tts_model="gpt-4o-mini-tts", tts_voice="alloy",
                 session=None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice
        self.http = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.OPENAI_API_KEY,
            base_url=config.OPENAI_BASE_URL,
            chat_model=config.OPENAI_CHAT_MODEL,
            embedding_model=config.OPENAI_EMBEDDING_MODEL,
            tts_model=config.OPENAI_TTS_MODEL,
            tts_voice=config.OPENAI_TTS_VOICE,
        )

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def stream_chat(self, messages, system_prompt=None):
        """Generator that yields text chunks from a streamed chat completion."""
        all_messages = list(messages)
        if system_prompt:
            all_messages = [{"role": "system", "content": system_prompt}] + all_messages

        payload = {
            "model": self.chat_model,
            "messages": all_messages,
            "stream": True,
        }

        response = self.http.post(
            f"{self.base_url}/chat/completions",
            headers=self._headers(),
            json=payload,
            stream=True,
            timeout=120,
        )
        response.raise_for_status()

        for line in response.iter_lines():
            if not line:
                continue
            if isinstance(line, bytes):
                line = line.decode("utf-8")
            if not line.startswith("data:"):
                continue
            data = line[len("data:"):].strip()
            if data == "[DONE]":
                break
            choices = json.loads(data).get("choices") or [{}]
            content = choices[0].get("delta", {}).get("content")
            if content:
                yield content

    def chat(self, messages, system_prompt=None):
        """Non-streaming variant. Returns the complete response string."""
        return "".join(self.stream_chat(messages, system_prompt))

    def embed(self, text):
        """Return the embedding vector for text."""
        response = self.http.post(
            f"{self.base_url}/embeddings",
            headers=self._headers(),
            json={"model": self.embedding_model, "input": text},
            timeout=30,
        )
        response.raise_for_status()
        return response.json()["data"][0]["embedding"]

    def stream_speech(self, text, chunk_size=16384):
        """Generator that yields audio/mpeg bytes for the spoken text."""
        response = self.http.post(
            f"{self.base_url}/audio/speech",
            headers=self._headers(),
            json={
                "model": self.tts_model,
                "voice": self.tts_voice,
                "input": text,
                "response_format": "mp3",
            },
            stream=True,
            timeout=60,
        )
        response.raise_for_status()
        try:
            for chunk in response.iter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
        finally:
            response.close()

    def speech(self, text):
        """Non-streaming variant. Returns the complete audio payload."""
        return b"".join(self.stream_speech(text))
