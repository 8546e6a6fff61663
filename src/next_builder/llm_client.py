"""
Multi-provider LLM client.

Tries each configured provider in order and returns the first non-empty
response. Providers without an API key are skipped.
"""

import os
from typing import Dict, List, Optional

import anthropic
import openai
import requests

from .errors import LLMError


OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_PROVIDERS = [
    {
        "name": "Claude 4 Sonnet",
        "type": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 8000,
        "temperature": 0.3
    },
    {
        "name": "GPT-4o",
        "type": "openai",
        "model": "gpt-4o",
        "max_tokens": 8000,
        "temperature": 0.3
    },
    {
        "name": "Claude-3.5 Sonnet",
        "type": "openrouter",
        "model": "anthropic/claude-3.5-sonnet",
        "max_tokens": 8000,
        "temperature": 0.3
    },
]


class LLMClient:
    def __init__(self, openai_api_key=None, openrouter_api_key=None, anthropic_api_key=None,
                 providers: Optional[List[Dict]] = None, timeout: int = 120):
        """Initialize clients for every provider that has a key."""
        self.openai_api_key = openai_api_key or os.getenv('OPENAI_API_KEY')
        self.openrouter_api_key = openrouter_api_key or os.getenv('OPENROUTER_API_KEY')
        self.anthropic_api_key = anthropic_api_key or os.getenv('ANTHROPIC_API_KEY')
        self.providers = providers or DEFAULT_PROVIDERS
        self.timeout = timeout

        self.openai_client = openai.OpenAI(api_key=self.openai_api_key) if self.openai_api_key else None
        self.anthropic_client = (anthropic.Anthropic(api_key=self.anthropic_api_key)
                                 if self.anthropic_api_key else None)

    @classmethod
    def from_settings(cls, settings) -> "LLMClient":
        return cls(openai_api_key=settings.openai_api_key,
                   openrouter_api_key=settings.openrouter_api_key,
                   anthropic_api_key=settings.anthropic_api_key)

    @property
    def available(self) -> bool:
        return bool(self.openai_client or self.anthropic_client or self.openrouter_api_key)

    def call_openai(self, messages: List[Dict], config: Dict) -> Optional[str]:
        if not self.openai_client:
            return None

        response = self.openai_client.chat.completions.create(
            model=config["model"],
            messages=messages,
            max_tokens=config["max_tokens"],
            temperature=config["temperature"],
        )
        return response.choices[0].message.content

    def call_anthropic(self, messages: List[Dict], config: Dict) -> Optional[str]:
        if not self.anthropic_client:
            return None

        # Anthropic takes the system prompt separately
        system_message = ""
        user_messages = []
        for msg in messages:
            if msg["role"] == "system":
                system_message = msg["content"]
            else:
                user_messages.append(msg)

        response = self.anthropic_client.messages.create(
            model=config["model"],
            max_tokens=config["max_tokens"],
            temperature=config["temperature"],
            system=system_message,
            messages=user_messages
        )
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")

    def call_openrouter(self, messages: List[Dict], config: Dict) -> Optional[str]:
        if not self.openrouter_api_key:
            return None

        headers = {
            "Authorization": f"Bearer {self.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "https://github.com/nextjs-master-builder",
            "X-Title": "NextJS Master Builder"
        }
        payload = {
            "model": config["model"],
            "messages": messages,
            "max_tokens": config["max_tokens"],
            "temperature": config["temperature"]
        }

        response = requests.post(OPENROUTER_URL, json=payload, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        return data["choices"][0]["message"]["content"]

    def complete(self, messages: List[Dict]) -> str:
        """
        Generate a response with fallback across providers.

        Raises:
            LLMError: no provider is configured or every provider failed
        """
        errors = []
        for i, config in enumerate(self.providers, 1):
            if config["type"] == "openai" and self.openai_client:
                call = self.call_openai
            elif config["type"] == "anthropic" and self.anthropic_client:
                call = self.call_anthropic
            elif config["type"] == "openrouter" and self.openrouter_api_key:
                call = self.call_openrouter
            else:
                continue

            print(f"🤖 Trying {config['name']} ({i}/{len(self.providers)})...")
            try:
                response = call(messages, config)
            except (anthropic.APIError, openai.OpenAIError, requests.RequestException, KeyError, IndexError) as e:
                print(f"❌ Error with {config['name']}: {str(e)}")
                errors.append(f"{config['name']}: {e}")
                continue

            if response and response.strip():
                print(f"✅ {config['name']} responded")
                return response
            print(f"⚠️ {config['name']} returned empty response")
            errors.append(f"{config['name']}: empty response")

        if not errors:
            raise LLMError("No LLM provider configured (set ANTHROPIC_API_KEY, OPENAI_API_KEY or OPENROUTER_API_KEY)")
        raise LLMError("All LLM providers failed: " + "; ".join(errors))
