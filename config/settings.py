"""Runtime settings, read from the environment. Entry points call load_dotenv() first."""

import os


# Generation backend: gemini | openai | offline
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "gemini")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_API_URL = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# Any OpenAI-compatible endpoint (OpenAI, Ollama at http://localhost:11434/v1, vLLM, ...)
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "http://localhost:11434/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "ollama")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "qwen2.5:3b")

# Request bounds (seconds)
LLM_CONNECT_TIMEOUT = float(os.getenv("LLM_CONNECT_TIMEOUT", "60"))
LLM_READ_TIMEOUT = float(os.getenv("LLM_READ_TIMEOUT", "180"))
LLM_WRITE_TIMEOUT = float(os.getenv("LLM_WRITE_TIMEOUT", "60"))

LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
LLM_MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "4096"))

# Assumed length of a message with no timing metadata. Tunable, not meaningful.
DEFAULT_MESSAGE_SECONDS = float(os.getenv("DEFAULT_MESSAGE_SECONDS", "5.0"))

ANALYSIS_CONCURRENCY = int(os.getenv("ANALYSIS_CONCURRENCY", "4"))

# Optional JSON file overriding the built-in keyword lexicon
LEXICON_PATH = os.getenv("LEXICON_PATH", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
