#!/usr/bin/env python3
"""Create the document-sync tables used by the DocuSeal webhook pipeline."""

import os
import psycopg2
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

SQL = """
-- 1. users (owned by the portal; read-only here)
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    email VARCHAR(255) NOT NULL,
    name VARCHAR(255),
    status VARCHAR(20) NOT NULL DEFAULT 'pending',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_users_email ON users(email);

-- 2. document_templates
CREATE TABLE IF NOT EXISTS document_templates (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    title VARCHAR(255) NOT NULL,
    docuseal_template_id VARCHAR(100),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    expiry_days INTEGER,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_document_templates_docuseal_id ON document_templates(docuseal_template_id, is_active);
CREATE INDEX IF NOT EXISTS idx_document_templates_title ON document_templates(title, is_active);

-- 3. user_documents: one row per (user, template); id = sha256('<user_id>:<template_id>')
CREATE TABLE IF NOT EXISTS user_documents (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    user_name VARCHAR(255),
    document_template_id TEXT NOT NULL REFERENCES document_templates(id) ON DELETE CASCADE,
    status VARCHAR(20) NOT NULL DEFAULT 'not_started',
    viewed_at TIMESTAMPTZ,
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    declined_at TIMESTAMPTZ,
    expires_at TIMESTAMPTZ,
    completed_document_url TEXT,
    completed_document_name TEXT,
    audit_log_url TEXT,
    submission_url TEXT,
    docuseal_submission_id VARCHAR(100),
    webhook_data JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE(user_id, document_template_id)
);

-- 4. document_webhook_events: append-only audit of inbound calls
CREATE TABLE IF NOT EXISTS document_webhook_events (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    event_type VARCHAR(100) NOT NULL,
    submission_id VARCHAR(100),
    payload JSONB NOT NULL,
    is_processed BOOLEAN NOT NULL DEFAULT FALSE,
    received_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    processed_at TIMESTAMPTZ,
    user_id TEXT,
    document_template_id TEXT
);
CREATE INDEX IF NOT EXISTS idx_document_webhook_events_lookup
    ON document_webhook_events(submission_id, event_type, is_processed, received_at DESC);
CREATE INDEX IF NOT EXISTS idx_document_webhook_events_received_at ON document_webhook_events(received_at);

-- 5. observability_metric_snapshots
CREATE TABLE IF NOT EXISTS observability_metric_snapshots (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    source VARCHAR(100) NOT NULL,
    request_id VARCHAR(100),
    counters JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


def main():
    print("Connecting to database...")
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    cur = conn.cursor()

    print("Creating tables...")
    cur.execute(SQL)

    cur.execute("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public' ORDER BY table_name;")
    tables = cur.fetchall()
    print(f"\nTables present: {[t[0] for t in tables]}")

    cur.execute("SELECT COUNT(*) FROM document_webhook_events WHERE NOT is_processed;")
    pending = cur.fetchone()[0]
    print(f"Unprocessed webhook events: {pending}")

    cur.close()
    conn.close()
    print("\nDone!")

if __name__ == "__main__":
    main()
