import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # ------------------------
    # Database
    # ------------------------
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./stay_easy.db")

    # ------------------------
    # Stripe Payments
    # ------------------------
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd").lower()

    # ------------------------
    # Logging
    # ------------------------
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE")  # stream only when unset

    # ------------------------
    # HTTP
    # ------------------------
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",") if o.strip()]
    PORT = int(os.getenv("PORT", "8002"))
