"""
Run the assistant's CLI.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    ask             One-shot request
    chat            Interactive chat session
    tasks           list / add / remove / enable / disable scheduled tasks
    scheduler run   Run the task scheduler in the foreground

Examples:
    python run_cli.py ask "what's 12*7"
    python run_cli.py ask "weather in Lisbon" --trace
    python run_cli.py tasks add "tech news" "every 2 hours" search "latest AI news"

Environment variables (all optional):
    LLM_PROVIDER        "openai", "groq", or "ollama"; controls every LLM component
    LLM_MODEL_OPENAI    Model name when LLM_PROVIDER=openai (default: gpt-4.1-mini)
    LLM_MODEL_GROQ      Model name when LLM_PROVIDER=groq (default: llama-3.3-70b-versatile)
    LLM_MODEL_OLLAMA    Model name when LLM_PROVIDER=ollama (default: llama3.2)
    OPENAI_API_KEY      Required when LLM_PROVIDER=openai
    GROQ_API_KEY        Required when LLM_PROVIDER=groq
    DB_PATH             SQLite document store (default: data/agent.db)
    LOG_LEVEL           Root log level (default: INFO)
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from adapters.cli.main import app

if __name__ == "__main__":
    app()
