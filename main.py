#!/usr/bin/env python3
"""
Chat Context Service
Chat backend that fits conversation history, documents and images into each model's context window.
"""

import uvicorn

from config import get_settings

if __name__ == "__main__":
    settings = get_settings()

    print("Chat context service")
    print("")
    print("API Documentation: http://localhost:8421/docs")
    print("Health Check: http://localhost:8421/api/health")
    print("")
    print(f"Provider: {settings.provider} ({settings.base_url})")
    print(f"Default model: {settings.default_model}, strategy: {settings.context_strategy}")
    print("")
    print("Configure your provider in .env: LLM_PROVIDER, OPENAI_API_KEY, LLM_BASE_URL")
    print("")

    uvicorn.run(
        "api:app",
        host="0.0.0.0",
        port=8421,
        reload=True,
        log_level=settings.log_level.lower(),
    )
