from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Dropbox app configuration
# The app key is a public identifier for a PKCE (secret-less) client, so a
# built-in fallback is shipped for packaged builds without a .env file.
BUILT_IN_DROPBOX_APP_KEY = "infsw3y8bz1yxkx"
DROPBOX_APP_KEY = config.get("DROPBOX_APP_KEY", BUILT_IN_DROPBOX_APP_KEY)

# Dropbox endpoints (hardcoded - not user configurable)
DROPBOX_AUTHORIZE_URL = "https://www.dropbox.com/oauth2/authorize"
DROPBOX_TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"
DROPBOX_API_BASE = "https://api.dropboxapi.com/2"
DROPBOX_CONTENT_BASE = "https://content.dropboxapi.com/2"

# App-folder file access plus the account info used for the profile display
OAUTH_SCOPES = "account_info.read files.metadata.read files.content.read files.content.write"

# Loopback redirect listener
OAUTH_CALLBACK_HOST = "127.0.0.1"
OAUTH_CALLBACK_PATH = "/callback"
# Max time to wait for the browser redirect before giving up
OAUTH_REDIRECT_TIMEOUT = config.get("OAUTH_REDIRECT_TIMEOUT", 30.0)

# Timeout configuration
# Connection timeout: Time to establish TCP connection
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 10.0)
# Request timeout: Total timeout for RPC-style calls (token, metadata, delete)
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)
# Transfer timeout: Total timeout for uploads/downloads of backup files
TRANSFER_TIMEOUT = config.get("TRANSFER_TIMEOUT", 120.0)

# Access token cache
# Cached tokens are not handed out within this many seconds of expiry
ACCESS_TOKEN_REFRESH_BUFFER = 5 * 60
# Ceiling applied to the provider-reported lifetime (Dropbox reports 4h)
ACCESS_TOKEN_MAX_TTL = config.get("ACCESS_TOKEN_MAX_TTL", 3600)

# Minimum time the "syncing" state stays visible before a result is shown
MIN_SYNCING_SECONDS = config.get("MIN_SYNCING_SECONDS", 0.7)

# Local storage
DATA_DIR = config.get("GOAL_TRACKER_DATA_DIR", str(Path.home() / ".goal-tracker"))
APP_DATA_FILE = str(Path(DATA_DIR) / "my-data.json")
PROFILE_FILE = str(Path(DATA_DIR) / "dropbox-profile.json")
SOUNDS_DIR = str(Path(DATA_DIR) / "sounds")

# OS keychain service name for the sync password and refresh token slots
KEYRING_SERVICE = config.get("KEYRING_SERVICE", "goal-tracker-sync")
