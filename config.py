import os

from dotenv import load_dotenv

load_dotenv()

APP_NAME = os.getenv("APP_NAME", "FixEase")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Auth settings
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkeychange")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
USER_TOKEN_EXPIRE_MINUTES = int(os.getenv("USER_TOKEN_EXPIRE_MINUTES", 60 * 24))
ADMIN_TOKEN_EXPIRE_MINUTES = int(os.getenv("ADMIN_TOKEN_EXPIRE_MINUTES", 60 * 24))

# Payment gateway
RAZORPAY_API_KEY = os.getenv("RAZORPAY_API_KEY")
RAZORPAY_API_SECRET = os.getenv("RAZORPAY_API_SECRET")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")

# Files
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
CLIENT_DIST = os.getenv("CLIENT_DIST", os.path.join("..", "client", "dist"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Wall clock used for payroll history entries
PAYROLL_TIMEZONE = os.getenv("PAYROLL_TIMEZONE", "Asia/Kolkata")


def is_production() -> bool:
    return ENVIRONMENT == "production"
