from pydantic import BaseModel
import os

class Settings(BaseModel):
    worker_url: str | None = os.getenv("WORKER_URL") or None
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", 3000))
    public_base_url: str | None = os.getenv("PUBLIC_BASE_URL") or None
    retention_hours: float = float(os.getenv("TASK_RETENTION_HOURS", 24))
    sweep_interval_seconds: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", 3600))
    dispatch_timeout_seconds: float = float(os.getenv("DISPATCH_TIMEOUT_SECONDS", 30))
    slow_task_log_seconds: float = float(os.getenv("SLOW_TASK_LOG_SECONDS", 120))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def callback_address(self) -> str:
        base = self.public_base_url or f"http://localhost:{self.port}"
        return f"{base.rstrip('/')}/api/webhook/result"

settings = Settings()
