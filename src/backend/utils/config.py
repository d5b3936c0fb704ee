"""
Konfiguration und Settings
"""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Anwendungs-Einstellungen"""

    # Datenbank
    database_url: str = "sqlite+aiosqlite:///./notifications.db"

    # Home Assistant (push + speech channels)
    home_assistant_url: Optional[str] = None
    home_assistant_token: Optional[str] = None

    # Notification Manager
    notification_processor_enabled: bool = True
    notification_queue_interval: float = 60.0       # Sekunden zwischen Queue-Durchläufen
    notification_queue_ttl: int = 24 * 60 * 60      # Max. Alter einer Queue-Notification (Sekunden)
    notification_history_limit: int = 1000          # Ring-Buffer für zugestellte Notifications
    notification_fatigue_window: int = 10 * 60      # Sekunden
    notification_fatigue_threshold: int = 10        # mehr als N Zustellungen im Fenster = Fatigue
    notification_active_window: int = 60 * 60      # Fenster für active_notification_count
    notification_channel_timeout: Optional[float] = 10.0  # None = kein Timeout pro Kanal
    notification_default_rules_enabled: bool = True
    notification_store_backend: str = "database"   # "database" oder "memory"

    # Channel adapters
    notification_push_service: str = "notify"      # HA notify service, e.g. "mobile_app_pixel"
    notification_tts_entity: Optional[str] = None  # e.g. "tts.piper"
    notification_tts_media_player: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "*"  # Comma-separated list or "*" for development

    @property
    def cors_origins_list(self) -> List[str]:
        """Gibt cors_origins als Liste zurück"""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


# Globale Settings Instanz
settings = Settings()
