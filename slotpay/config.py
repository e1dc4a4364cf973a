# slotpay/config.py
from functools import lru_cache
from typing import Optional

import pytz
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== App =====
    APP_NAME: str = "slotpay"
    # "dev" agrega el detalle interno de errores 5xx a las respuestas; cualquier otro valor lo oculta
    ENV: str = "prod"
    # TZ local del consultorio: las fechas con zona se convierten a esta antes de truncar
    TIMEZONE: str = "Asia/Kolkata"
    # Orígenes permitidos para CORS, separados por coma ("*" = todos)
    CORS_ORIGINS: str = "*"

    # ===== DB =====
    # En producción define DATABASE_URL con tu Postgres. Local cae a SQLite.
    DATABASE_URL: str = "sqlite:///./slotpay.db"

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 min

    # ===== Razorpay =====
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_TIMEOUT: float = 10.0  # segundos por llamada
    DEFAULT_CURRENCY: str = "INR"

    # Si es True, /api/appointments solo acepta paymentId ya verificados por /api/verify-payment
    REQUIRE_VERIFIED_PAYMENT: bool = False

    # ===== Horario de consultorio y slots =====
    CLINIC_OPEN_HOUR: int = 9
    CLINIC_CLOSE_HOUR: int = 18
    SLOT_MINUTES: int = 30

    # ===== Twilio =====
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_WHATSAPP_FROM: Optional[str] = None

    # Simulación (True = no envía mensajes reales)
    DRY_RUN: bool = False

    # Recordatorios por hora (APScheduler)
    ENABLE_SCHEDULER: bool = False

    def model_post_init(self, __context) -> None:
        """
        Normaliza:
          - moneda en mayúsculas
          - llaves de Razorpay sin espacios (vacías → None)
        y valida la ventana del consultorio y la TIMEZONE.
        """
        self.DEFAULT_CURRENCY = (self.DEFAULT_CURRENCY or "INR").strip().upper()
        self.RAZORPAY_KEY_ID = (self.RAZORPAY_KEY_ID or "").strip() or None
        self.RAZORPAY_KEY_SECRET = (self.RAZORPAY_KEY_SECRET or "").strip() or None

        if not (0 <= self.CLINIC_OPEN_HOUR < self.CLINIC_CLOSE_HOUR <= 24):
            raise ValueError("CLINIC_OPEN_HOUR debe ser menor que CLINIC_CLOSE_HOUR (0-24).")
        if self.SLOT_MINUTES <= 0:
            raise ValueError("SLOT_MINUTES debe ser positivo.")
        try:
            pytz.timezone(self.TIMEZONE)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"TIMEZONE desconocida: {self.TIMEZONE!r}")

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def razorpay_key_mode(self) -> str:
        if not self.RAZORPAY_KEY_ID:
            return "NOT FOUND"
        return "LIVE" if self.RAZORPAY_KEY_ID.startswith("rzp_live_") else "TEST"


@lru_cache
def get_settings() -> Settings:
    return Settings()
