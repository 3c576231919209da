from pydantic_settings import BaseSettings
from pydantic import SecretStr
from pathlib import Path
from typing import List
import os
from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent

class Settings(BaseSettings):
    app_name: str = "Architect Study API"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # On-device store
    local_db_url: str = os.getenv("LOCAL_DB_URL", "sqlite:///archstudy.db")
    builtin_questions_path: str = os.getenv(
        "BUILTIN_QUESTIONS_PATH", str(PACKAGE_DIR / "data" / "builtin_questions.json")
    )

    # Supabase Configuration
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_anon_key: SecretStr = SecretStr(os.getenv("SUPABASE_ANON_KEY", ""))
    questions_table: str = os.getenv("QUESTIONS_TABLE", "questions")
    history_table: str = os.getenv("HISTORY_TABLE", "history")
    memos_table: str = os.getenv("MEMOS_TABLE", "memos")
    public_question_bank: bool = os.getenv("PUBLIC_QUESTION_BANK", "true").lower() == "true"

    # Batching
    remote_batch_size: int = int(os.getenv("REMOTE_BATCH_SIZE", 500))
    remote_page_size: int = int(os.getenv("REMOTE_PAGE_SIZE", 1000))

    # Admin policy (comma separated)
    admin_user_ids: str = os.getenv("ADMIN_USER_IDS", "")
    admin_emails: str = os.getenv("ADMIN_EMAILS", "")

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key.get_secret_value())

    @property
    def admin_user_id_list(self) -> List[str]:
        return [uid.strip() for uid in self.admin_user_ids.split(",") if uid.strip()]

    @property
    def admin_email_list(self) -> List[str]:
        return [email.strip().lower() for email in self.admin_emails.split(",") if email.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

settings = Settings()
