"""Test environment: in-memory SQLite and a fixed signing secret, set before app imports."""

import os

os.environ["APP_ENV"] = "dev"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["REQUIRE_VERIFIED_EMAIL"] = "false"
os.environ["API_URL"] = "http://testserver"
