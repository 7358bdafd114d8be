import os

# Keep the app's default engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
