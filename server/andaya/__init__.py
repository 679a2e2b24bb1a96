"""AndaYa car-rental marketplace API."""
