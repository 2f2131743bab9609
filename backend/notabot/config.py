import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Logging
    VERBOSE = os.environ.get("VERBOSE", "0") == "1"

    # Game
    ANSWERING_TIME_SEC = int(os.environ.get("ANSWERING_TIME_SEC", "45"))
    VOTING_TIME_SEC = int(os.environ.get("VOTING_TIME_SEC", "30"))
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "3"))
    MAX_AI_COUNT = int(os.environ.get("MAX_AI_COUNT", "5"))
    POLL_INTERVAL_SEC = float(os.environ.get("POLL_INTERVAL_SEC", "1.0"))

    # Storage: optimistic write retries per operation
    MAX_WRITE_RETRIES = int(os.environ.get("MAX_WRITE_RETRIES", "5"))

    # AI impersonator
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")
