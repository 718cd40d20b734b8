"""Configuration settings for the Static Site Host."""
import os

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

# Public URL of a site is https://{subdomain}.{HOSTING_DOMAIN}
HOSTING_DOMAIN = os.getenv("HOSTING_DOMAIN", "webhost.zone.id")

# Upload limits
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_FILES = 20
CHUNK_SIZE = 8192  # 8KB

ALLOWED_EXTENSIONS = {
    ".html", ".css", ".js", ".txt", ".json",
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp",
}

# Browser origins allowed to call the API
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "https://webhost.zone.id,https://www.webhost.zone.id,http://localhost:3000",
    ).split(",")
    if origin.strip()
]

# Directory paths
SITES_DIR = os.getenv("SITES_DIR", "./sites")
TEMP_DIR = os.getenv("TEMP_DIR", "./temp")
LOGS_DIR = os.getenv("LOGS_DIR", "./logs")
