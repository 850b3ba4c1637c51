from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SyncState(str, enum.Enum):
    """Sync run status published to pollers"""
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"
