from typing import Optional
from pydantic_settings import BaseSettings
from urllib.parse import quote_plus

class Settings(BaseSettings):
    ENV: str = "production"

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "pdfstore"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # set to point at any other database (sqlite in tests)
    DATABASE_URL: Optional[str] = None

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    base_url: str = "http://localhost:8000"
    # storefront that hosts the login and My Orders pages
    frontend_url: str = "http://localhost:5173"

    R2_ACCOUNT_ID: str = ""
    R2_ACCESS_KEY_ID: str = ""
    R2_SECRET_ACCESS_KEY: str = ""
    R2_BUCKET_NAME: str = "pdfs"

    BREVO_API_KEY: str = ""
    MAIL_FROM: str = "no-reply@pdfstore.local"
    STORE_NAME: str = "PDF Store"

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
