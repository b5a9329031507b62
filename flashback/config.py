# flashback/config.py
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    slack_bot_token: str = ""
    slack_app_token: str = ""
    bot_name: str = "flashback"
    db_path: str = "./flashback.db"

    history_page_size: int = 100    # Messages requested per history page
    api_max_retries: int = 3        # Retries for rate-limited or failed API calls
    results_filename: str = "search_results.txt"
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"

    class Config:
        env_file = ".env"

settings = Settings()
