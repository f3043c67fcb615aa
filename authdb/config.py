"""Table-name configuration for the session queries."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class TableNameConfig:
    """Physical table names for the logical roles used by session lookups."""

    members: str = "members"
    sessions: str = "sessions"

    @classmethod
    def from_env(cls) -> "TableNameConfig":
        """
        Build configuration from environment variables.

        Environment Variables:
            AUTHDB_MEMBERS_TABLE: Members table (default: members)
            AUTHDB_SESSIONS_TABLE: Sessions table (default: sessions)
        """
        return cls(
            members=os.getenv("AUTHDB_MEMBERS_TABLE", "members"),
            sessions=os.getenv("AUTHDB_SESSIONS_TABLE", "sessions"),
        )
