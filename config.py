# config.py
import os

# --- Crawler ---
CRAWLER_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36'
}

# --- Novel Source ---
NOVEL_BASE_URL = os.getenv('NOVEL_BASE_URL', 'http://www.999xiaoshuo.cc').rstrip('/')
NOVEL_HTTP_TIMEOUT_SECONDS = float(os.getenv('NOVEL_HTTP_TIMEOUT_SECONDS', 10))
# Page count used by the hourly scheduled run
NOVEL_MAX_PAGES = int(os.getenv('NOVEL_MAX_PAGES', 10))

# --- Session Cookie ---
NOVEL_COOKIE_FILE = os.getenv('NOVEL_COOKIE_FILE', 'cookies.txt')
NOVEL_DEFAULT_COOKIE = os.getenv(
    'NOVEL_DEFAULT_COOKIE',
    'fontSize=20px; ismini=1; isnight=1; server_name_session=c570e5ab596085fde0ac25c25e6b570f; '
    '21b687374f9f2d27e97e76ebcbed1570=692740f22aa1e357e1043b306172f70f',
)

# --- Fetch Retry ---
NOVEL_FETCH_MAX_ATTEMPTS = int(os.getenv('NOVEL_FETCH_MAX_ATTEMPTS', 3))
NOVEL_RETRY_INITIAL_DELAY_SECONDS = float(os.getenv('NOVEL_RETRY_INITIAL_DELAY_SECONDS', 5))
NOVEL_BLOCK_COOLDOWN_SECONDS = float(os.getenv('NOVEL_BLOCK_COOLDOWN_SECONDS', 300))

# --- Crawl Pacing ---
NOVEL_CRAWL_DELAY_SECONDS = float(os.getenv('NOVEL_CRAWL_DELAY_SECONDS', 10))
NOVEL_CRAWL_DELAY_PER_PAGE_SECONDS = float(os.getenv('NOVEL_CRAWL_DELAY_PER_PAGE_SECONDS', 0.01))
NOVEL_CRAWL_DELAY_JITTER_SECONDS = float(os.getenv('NOVEL_CRAWL_DELAY_JITTER_SECONDS', 1.0))
NOVEL_MAX_ERRORS = int(os.getenv('NOVEL_MAX_ERRORS', 10))

# --- Scheduled Trigger ---
# The hourly cron script asks the running web process to crawl
NOVEL_API_BASE_URL = os.getenv('NOVEL_API_BASE_URL', 'http://127.0.0.1:5000').rstrip('/')
NOVEL_SCHEDULED_POLL_SECONDS = float(os.getenv('NOVEL_SCHEDULED_POLL_SECONDS', 15))

# --- Search ---
SEARCH_DEFAULT_PAGE_SIZE = int(os.getenv('SEARCH_DEFAULT_PAGE_SIZE', 20))
SEARCH_MAX_PAGE_SIZE = int(os.getenv('SEARCH_MAX_PAGE_SIZE', 100))

# --- Database ---
DB_TIMEZONE = os.getenv('DB_TIMEZONE', 'Asia/Shanghai')

# --- Web ---
CORS_ALLOW_ORIGINS = [
    origin.strip() for origin in os.getenv('CORS_ALLOW_ORIGINS', '').split(',') if origin.strip()
]
CORS_SUPPORTS_CREDENTIALS = os.getenv('CORS_SUPPORTS_CREDENTIALS', '').strip().lower() in {'1', 'true', 'yes', 'on'}

# --- Logging ---
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
