import os
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Settings:
    # -------------------------------------------------------
    # Project
    # -------------------------------------------------------
    PROJECT_NAME: str = "Family Graph API"
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # -------------------------------------------------------
    # Database
    # -------------------------------------------------------
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./family_graph.db"
    )

    # Render uses postgres:// but SQLAlchemy needs postgresql://
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

    # -------------------------------------------------------
    # Authentication / JWT (verification only)
    # -------------------------------------------------------
    SECRET_KEY: str = os.getenv(
        "SECRET_KEY",
        "supersecretlocalkey123"   # Only used for local dev
    )
    ALGORITHM: str = "HS256"

    # 1 day token expiry by default
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
    )

    # -------------------------------------------------------
    # Smart-link matching
    # -------------------------------------------------------
    # Name candidates must score strictly above this value
    SMART_LINK_MIN_SCORE: float = float(os.getenv("SMART_LINK_MIN_SCORE", 0.5))
    SMART_LINK_MAX_CANDIDATES: int = int(os.getenv("SMART_LINK_MAX_CANDIDATES", 10))
    # An admin's manual pick on a join request must be at least this close
    SMART_LINK_NAME_MATCH_SCORE: float = float(os.getenv("SMART_LINK_NAME_MATCH_SCORE", 0.7))

    # -------------------------------------------------------
    # Relationship validation
    # -------------------------------------------------------
    # How many generations up we walk when checking for ancestry cycles
    ANCESTRY_CHECK_DEPTH: int = int(os.getenv("ANCESTRY_CHECK_DEPTH", 64))


# Single instance that is imported everywhere
settings = Settings()
