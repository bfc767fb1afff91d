"""Blog configuration"""
from os import environ
from dotenv import load_dotenv

load_dotenv()


class Config:
    PRISMIC_API_ENDPOINT = environ.get("QUART_PRISMIC_API_ENDPOINT")
    PRISMIC_ACCESS_TOKEN = environ.get("QUART_PRISMIC_ACCESS_TOKEN")
    POSTS_PAGE_SIZE = 5
    REVALIDATE_SECONDS = 60 * 48
    NOT_FOUND_REVALIDATE_SECONDS = 60
    MAX_CACHED_PAGES = 1000
    REQUEST_TIMEOUT = 10.0
    MAX_RETRIES = 3
    RETRY_DELAY = 1.0
    DEDUPE_POSTS = True
    DATE_LOCALE = "pt_BR"
    DATE_TIMEZONE = "America/Sao_Paulo"
    PREBUILD = True
    SENTRY_DSN = environ.get("QUART_SENTRY_DSN")
