"""SQLite schema for persisted call history."""

SCHEMA_SQL = """
-- Projects table
CREATE TABLE IF NOT EXISTS projects (
    name TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
);

-- Subprojects table
CREATE TABLE IF NOT EXISTS subprojects (
    project TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (project, name),
    FOREIGN KEY (project) REFERENCES projects(name) ON DELETE CASCADE
);

-- Sessions table
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    project TEXT NOT NULL,
    subproject TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (project, subproject) REFERENCES subprojects(project, name) ON DELETE CASCADE
);

-- Call records table
CREATE TABLE IF NOT EXISTS call_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    method TEXT NOT NULL,
    endpoint TEXT NOT NULL,
    payload TEXT,
    response TEXT,
    status INTEGER NOT NULL DEFAULT 0,
    timestamp TEXT NOT NULL,
    FOREIGN KEY (session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
);

-- Narrative reports table
CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project TEXT NOT NULL,
    subproject TEXT,
    narrative TEXT NOT NULL,
    records TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_sessions_scope_created
    ON sessions(project, subproject, created_at);
CREATE INDEX IF NOT EXISTS idx_call_records_session ON call_records(session_id);
CREATE INDEX IF NOT EXISTS idx_call_records_timestamp ON call_records(timestamp);
CREATE INDEX IF NOT EXISTS idx_reports_project_created ON reports(project, created_at);
"""
