class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, table_name: str, db: "FakeSupabase"):
        self.table_name = table_name
        self.db = db
        self.operation = "select"
        self.payload = None
        self.on_conflict = "id"
        self.ignore_duplicates = False
        self.filters = []
        self.order_by = None
        self.limit_count = None

    def select(self, _fields: str):
        self.operation = "select"
        return self

    def insert(self, payload: dict):
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload: dict):
        self.operation = "update"
        self.payload = payload
        return self

    def upsert(self, payload: dict, on_conflict: str = "id", ignore_duplicates: bool = False):
        self.operation = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, key: str, value):
        self.filters.append(("eq", key, value))
        return self

    def lt(self, key: str, value):
        self.filters.append(("lt", key, value))
        return self

    def in_(self, key: str, values):
        self.filters.append(("in", key, list(values)))
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def _matches(self, row: dict) -> bool:
        for kind, key, value in self.filters:
            if kind == "eq" and row.get(key) != value:
                return False
            if kind == "lt" and (row.get(key) is None or row.get(key) >= value):
                return False
            if kind == "in" and row.get(key) not in value:
                return False
        return True

    def execute(self):
        self.db.calls.append((self.table_name, self.operation))
        if (self.table_name, self.operation) in self.db.failures:
            raise Exception(f"simulated {self.operation} failure on {self.table_name}")
        table = self.db.tables.setdefault(self.table_name, [])

        if self.operation == "insert":
            row = dict(self.payload or {})
            row.setdefault("id", f"{self.table_name}-{len(table)+1}")
            table.append(row)
            return FakeResponse([dict(row)])

        if self.operation == "upsert":
            keys = [key.strip() for key in self.on_conflict.split(",")]
            for row in table:
                if all(row.get(key) == self.payload.get(key) for key in keys):
                    if self.ignore_duplicates:
                        return FakeResponse([])
                    row.update(self.payload)
                    return FakeResponse([dict(row)])
            row = dict(self.payload)
            table.append(row)
            return FakeResponse([dict(row)])

        if self.operation == "update":
            updated = []
            for row in table:
                if self._matches(row):
                    row.update(self.payload or {})
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.operation == "delete":
            removed = [row for row in table if self._matches(row)]
            self.db.tables[self.table_name] = [row for row in table if not self._matches(row)]
            return FakeResponse([dict(row) for row in removed])

        rows = [dict(row) for row in table if self._matches(row)]
        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda row: (row.get(column) is not None, row.get(column) or ""), reverse=desc)
        if self.limit_count is not None:
            rows = rows[: self.limit_count]
        return FakeResponse(rows)


class FakeSupabase:
    def __init__(self, tables: dict | None = None):
        self.tables = {
            "users": [],
            "document_templates": [],
            "user_documents": [],
            "document_webhook_events": [],
            "observability_metric_snapshots": [],
        }
        self.tables.update(tables or {})
        self.calls = []
        self.failures = set()

    def table(self, table_name: str):
        return FakeQuery(table_name, self)

    def writes(self, table_name: str) -> list[str]:
        return [
            operation
            for name, operation in self.calls
            if name == table_name and operation in {"insert", "update", "upsert", "delete"}
        ]


def seed_subject(db: FakeSupabase, *, expiry_days=30) -> None:
    db.tables["users"].append(
        {"id": "user-1", "email": "a@b.com", "name": "Ana Care", "created_at": "2023-06-01T00:00:00+00:00"}
    )
    db.tables["document_templates"].append(
        {
            "id": "tmpl-1",
            "title": "Handbook",
            "docuseal_template_id": "T1",
            "is_active": True,
            "expiry_days": expiry_days,
        }
    )


def docuseal_payload(event_type: str, timestamp: str = "2024-01-01T12:00:00Z", **data) -> dict:
    body = {
        "id": 501,
        "email": "a@b.com",
        "template": {"id": "T1", "name": "Handbook"},
    }
    body.update(data)
    return {"event_type": event_type, "timestamp": timestamp, "data": body}
