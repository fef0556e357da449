"""
Run the assistant's REST API.

Usage:
    python run_api.py

Environment variables (all optional, see infrastructure/config.py):
    LLM_PROVIDER        "openai", "groq", or "ollama" (default: ollama)
    OPENAI_API_KEY      Required when LLM_PROVIDER=openai
    GROQ_API_KEY        Required when LLM_PROVIDER=groq
    OLLAMA_BASE_URL     Ollama server URL (default: http://localhost:11434/)
    PLANNER_MODE        "rules" or "llm" (default: rules)
    DB_PATH             SQLite document store (default: data/agent.db)
    SCHEDULER_ENABLED   Start the task scheduler with the API (default: true)
    API_HOST / API_PORT Bind address (default: 0.0.0.0:8000)
"""

import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "adapters.rest.app:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "").lower() in ("1", "true", "yes"),
    )
