# flyer_pipeline/config.py

# Import the 'Path' object for handling file paths in a way that works on any OS (Windows, macOS, Linux)
from pathlib import Path

# --- File Path Settings ---
# This line gets the path to the directory where this config.py file is located (the package directory).
PACKAGE_PATH = Path(__file__).parent
# The repository root, one level above the package.
ROOT_PATH = PACKAGE_PATH.parent
# Declarative per-catalog definitions (one JSON file per catalog).
CONFIGS_PATH = ROOT_PATH / "configs"
# All downloaded images and the catalog registry are saved under here.
DATA_PATH = ROOT_PATH / "data"
# Public URL prefix the API layer serves the downloaded assets under.
PUBLIC_ROOT = "/newsletters"

# --- Browser/Network Settings ---
# The User-Agent string tells the website what kind of browser we are. We use a common one to avoid being blocked.
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
# The size of the virtual browser window.
VIEWPORT = {"width": 1920, "height": 1080}
# The maximum time (in milliseconds) to wait for a page to load before giving up.
REQUEST_TIMEOUT = 60000  # 60 seconds
# How long to wait for the network to go idle after navigation. Timing out here is not an error.
NETWORK_IDLE_TIMEOUT = 10000  # 10 seconds
# Timeout (in seconds) for a single image download. None keeps the transport default.
DOWNLOAD_TIMEOUT = 30.0

# --- Acquisition Settings ---
# Fixed wait after navigation so client-side rendering can finish before we look for images.
SETTLE_DELAY_MS = 2000
# Pause between two consecutive page renders against the same site.
PAGE_DELAY_S = 0.5
# How many image downloads may run at the same time.
DOWNLOAD_CONCURRENCY = 5
# Consecutive empty or duplicate pages that end a catalog early. 0 disables the check.
STALE_PAGE_LIMIT = 3
# Overall time budget (in seconds) for one catalog run.
RUN_DEADLINE_S = 600.0

# --- Image Locator Settings ---
# Images must be wider AND taller than this (in rendered pixels) to count as a catalog page.
MIN_IMAGE_DIMENSION = 500
# Selectors tried in order when no large image was measured. Most specific first.
LOCATOR_SELECTORS = [
    "img.page-image",
    "img.flyer-page",
    "img.leaflet-page",
    "img.flipbook-page",
    ".page-container img",
    ".flyer-viewer img",
    ".leaflet img",
    ".viewer img",
    "main img",
    "article img",
]
# Substrings identifying the CDN hosts that serve catalog page images.
ASSET_HOSTS = [
    "imgproxy.leaflets.schwarz",
    "leaflets.schwarz",
]

# --- Page Template Settings ---
# The positional marker that carries the page number inside catalog URLs.
PAGE_PATTERN = r"/page/(\d+)"

# --- Catalog Discovery Settings ---
# Links on a store's listing page whose path matches this lead to a catalog viewer.
DISCOVERY_LINK_PATTERN = r"/cataloage/"
# A discovered catalog URL must contain one of these (weekly flyers carry their validity period)...
DISCOVERY_REQUIRED = ["perioada"]
# ...and none of these (discount brochures are not paginated flyers).
DISCOVERY_EXCLUDED = ["reduceri"]
# Viewer segments removed from discovered links, so each catalog is listed once.
DISCOVERY_STRIP_PATTERNS = [r"/ar/\d+", r"/view/flyer/page/\d+"]
# Appended to a catalog URL to address one of its pages.
DISCOVERY_PAGE_PATH = "/view/flyer/page/{page}"
# Last page assumed for a discovered catalog; the early stop trims the real end.
DISCOVERY_MAX_PAGES = 30
