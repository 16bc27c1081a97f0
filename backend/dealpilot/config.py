import os
from dotenv import load_dotenv

# Load environment variables from .env, if present
load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dealpilot.db")

# Gemini / OpenAI
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
OPENAI_DOCUMENT_MODEL = os.getenv("OPENAI_DOCUMENT_MODEL", "gpt-4o")

# Generated document storage
DOCUMENT_STORAGE_DIR = os.getenv("DOCUMENT_STORAGE_DIR", "./deal_documents")

# Assistant endpoint used by the conversation client
ASSISTANT_URL = os.getenv("ASSISTANT_URL", "http://localhost:8000")
ASSISTANT_TIMEOUT = float(os.getenv("ASSISTANT_TIMEOUT", "120"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
INTERPRETATION_LOG = os.getenv("INTERPRETATION_LOG")

# Frontend CORS
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "*")
