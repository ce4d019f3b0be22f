"""SQLite schema definitions."""

SCHEMA_VERSION = 1

TABLES = [
    # ── Sessions ────────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS auth_sessions (
        session_token   TEXT PRIMARY KEY,
        user_id         TEXT NOT NULL,
        access_token    TEXT NOT NULL,
        refresh_token   TEXT NOT NULL DEFAULT '',
        created_at      TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON auth_sessions(user_id)",

    # ── Enphase Systems ─────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS enphase_systems (
        user_id     TEXT NOT NULL,
        system_id   INTEGER NOT NULL,
        name        TEXT NOT NULL DEFAULT '',
        public_name TEXT NOT NULL DEFAULT '',
        timezone    TEXT NOT NULL DEFAULT '',
        PRIMARY KEY (user_id, system_id)
    )
    """,

    # ── Power Sinks ─────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS powersinks (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id     TEXT NOT NULL,
        system_id   INTEGER NOT NULL,
        channel     TEXT NOT NULL,
        recipient   TEXT,
        created_at  TEXT NOT NULL,
        FOREIGN KEY (user_id, system_id) REFERENCES enphase_systems(user_id, system_id)
            ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_powersinks_system ON powersinks(user_id, system_id)",

    # ── Action Log ──────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS actions_log (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        powersink_id    INTEGER NOT NULL,
        timestamp       TEXT NOT NULL,
        desired_action  TEXT NOT NULL,
        desired_reason  TEXT NOT NULL DEFAULT '',
        executed_action TEXT NOT NULL,
        executed_reason TEXT NOT NULL DEFAULT '',
        success         INTEGER NOT NULL,
        success_reason  TEXT NOT NULL DEFAULT '',
        FOREIGN KEY (powersink_id) REFERENCES powersinks(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_actions_sink_time ON actions_log(powersink_id, timestamp)",

    # ── Telemetry ───────────────────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS enphase_telemetry (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id         TEXT NOT NULL,
        system_id       INTEGER NOT NULL,
        start_at        TEXT NOT NULL,
        end_at          TEXT NOT NULL,
        inserted_at     TEXT NOT NULL,
        produced_watts  INTEGER NOT NULL,
        consumed_watts  INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_telemetry_system_time ON enphase_telemetry(system_id, start_at)",

    # ── Schema version tracking ─────────────────────────────
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id      INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL
    )
    """,
]
