# propmatch/config.py
from dotenv import load_dotenv
import os

load_dotenv()

# API Keys (a missing key disables that data source)
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
REGRID_API_KEY = os.getenv("REGRID_API_KEY")

# Matching parameters
MAX_DISTANCE_METERS = float(os.getenv("PROPMATCH_MAX_DISTANCE_METERS", "25"))
MIN_CONFIDENCE_SCORE = float(os.getenv("PROPMATCH_MIN_CONFIDENCE_SCORE", "0.75"))
ADDRESS_MATCH_THRESHOLD = 0.85
GEOCODER_ROOFTOP_CONFIDENCE = 1.0
GEOCODER_DEFAULT_CONFIDENCE = 0.8
PARCEL_BASE_CONFIDENCE = 0.9

# Runtime parameters
CONCURRENCY = 10
REQUEST_TIMEOUT = 30
PARCEL_CACHE_TTL = 24 * 60 * 60
MAX_CONCURRENT_WORKERS = 5
MAX_QUEUE_SIZE = 100
WORKER_TIMEOUT = 300
DELAY_BETWEEN_PHOTOS = 0.3
LOG_LEVEL = "DEBUG"

# URLs
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
REGRID_URL = "https://app.regrid.com/api/v1/parcels/point"

# File names
INPUT_DIR = "uploads"
PROPERTIES_CSV = "properties.csv"
OUTPUT_CSV = "photo_assignments.csv"
