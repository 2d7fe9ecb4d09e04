import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker + session status) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- WhatsApp gateway ---
    WHATSAPP_GATEWAY_URL = os.environ.get("WHATSAPP_GATEWAY_URL", "http://localhost:3000")
    WHATSAPP_GATEWAY_API_KEY = os.environ.get("WHATSAPP_GATEWAY_API_KEY")
    WHATSAPP_SESSION_NAME = os.environ.get("WHATSAPP_SESSION_NAME", "main-session")
    WHATSAPP_WEBHOOK_SECRET = os.environ.get("WHATSAPP_WEBHOOK_SECRET")
    GATEWAY_TIMEOUT_SECONDS = float(os.environ.get("GATEWAY_TIMEOUT_SECONDS", "15"))

    # --- Session lifecycle ---
    RECONNECT_DELAY_SECONDS = float(os.environ.get("RECONNECT_DELAY_SECONDS", "5"))
    RECONNECT_FAILURE_DELAY_SECONDS = float(os.environ.get("RECONNECT_FAILURE_DELAY_SECONDS", "10"))
    SESSION_SETTLE_SECONDS = float(os.environ.get("SESSION_SETTLE_SECONDS", "5"))
    SEND_TIMEOUT_SECONDS = float(os.environ.get("SEND_TIMEOUT_SECONDS", "30"))

    # --- Reminder queue ---
    REMINDER_MAX_ATTEMPTS = int(os.environ.get("REMINDER_MAX_ATTEMPTS", "3"))
    REMINDER_BACKOFF_SECONDS = float(os.environ.get("REMINDER_BACKOFF_SECONDS", "2"))

    # --- Messaging content ---
    RESCHEDULE_URL = os.environ.get("RESCHEDULE_URL", "https://seulink.com/agendar")

    # --- Admin surface ---
    ADMIN_API_TOKEN = os.environ.get("ADMIN_API_TOKEN")

    # --- Default Timezone / logging ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "America/Sao_Paulo")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


settings = Settings()
