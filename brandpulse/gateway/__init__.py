"""LLM provider gateway.

Provides async adapters for the providers used by the scoring engine and a
bounded, ordered fallback chain over them:
  - OpenAI-compatible chat completions (Cerebras, OpenRouter)
  - Google AI generateContent (Gemini)
  - ProviderChain: first non-empty, parseable response wins
"""
