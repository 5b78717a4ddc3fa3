from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
import os


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "FreshTrace Ledger API"
    debug: bool = False
    database_url: str = "sqlite:///./freshtrace.db"
    host: str = "127.0.0.1"
    port: int = 8000
    allowed_hosts: str = ""
    static_dir: Path = Path(__file__).parent.parent.parent / "static"
    public_url: str = "http://localhost:8000"

    # Identity that owns the ledger; registered as Admin on first start.
    owner_address: str = "0xAdmin"
    owner_name: str = "System Admin"
    owner_contact: str = ""

    log_file: str = "logs/application.log"
    log_level: str = "INFO"


settings = Settings()

if not settings.owner_address:
    raise RuntimeError("Ledger owner address not configured.")

if not settings.database_url:
    raise RuntimeError("Database URL not configured.")


os.makedirs(settings.static_dir, exist_ok=True)
