"""In-memory stand-ins for a Greenplum server reached through psycopg2."""

import re
import threading
from typing import Dict, List, Optional

_CREATE = re.compile(r"CREATE TABLE (\S+) \((.*)\)", re.DOTALL)
_DROP = re.compile(r"DROP TABLE (\S+)")
_RENAME = re.compile(r"ALTER TABLE (\S+) RENAME TO (\S+)")
_EMPTY_SELECT = re.compile(r"SELECT \* FROM (\S+) WHERE 1=0")
_TRUNCATE = re.compile(r"TRUNCATE TABLE (\S+)")
_COPY = re.compile(r"COPY (\S+) FROM STDIN")


class QueryCanceled(Exception):
    pass


def normalize(name: str) -> str:
    return ".".join(part.strip('"') for part in name.split("."))


def column_names(body: str) -> List[str]:
    names, depth, current = [], 0, ""
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                break
        if ch == "," and depth == 0:
            names.append(current)
            current = ""
        else:
            current += ch
    names.append(current)
    return [item.split()[0].strip('"') for item in names if item.strip()]


class FakeDatabase:
    def __init__(self):
        self.tables: Dict[str, List[bytes]] = {}
        self.ddl: Dict[str, str] = {}
        self.columns: Dict[str, List[str]] = {}
        self.statements: List[str] = []
        self.connections: List["FakeConnection"] = []
        self.fail_patterns: List[str] = []
        self.fail_copy_after_rows: Optional[int] = None
        self.fail_copy_once_for: set = set()
        self.hang_copy = False
        self.ignore_cancel = False
        self.release = threading.Event()
        self.copy_error: Optional[BaseException] = None
        self.fail_connect = False
        self.fail_close = False
        self.lock = threading.Lock()

    # Spark workers receive a copy of the server state taken when the
    # partition function is serialized.
    def __getstate__(self):
        state = dict(self.__dict__)
        del state["lock"], state["release"]
        state["connections"] = []
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self.lock = threading.Lock()
        self.release = threading.Event()

    def connect(self):
        if self.fail_connect:
            raise ConnectionError("could not connect to server")
        conn = FakeConnection(self)
        with self.lock:
            self.connections.append(conn)
        return conn

    def table_names(self):
        with self.lock:
            return sorted(self.tables)

    def staging_tables(self):
        return [name for name in self.table_names() if name.endswith("_sparkGpTmp")]

    def rows(self, table: str) -> List[bytes]:
        with self.lock:
            return list(self.tables[normalize(table)])

    # -- statement handling -------------------------------------------------
    def check_failure(self, sql: str) -> None:
        for pattern in self.fail_patterns:
            if re.search(pattern, sql):
                raise RuntimeError(f"injected failure for: {sql}")

    def apply(self, sql: str) -> Optional[List[str]]:
        with self.lock:
            self.statements.append(sql)
            self.check_failure(sql)
            match = _CREATE.fullmatch(sql.strip())
            if match:
                name = normalize(match.group(1))
                if name in self.tables:
                    raise RuntimeError(f'relation "{name}" already exists')
                self.tables[name] = []
                self.ddl[name] = sql
                self.columns[name] = column_names(match.group(2))
                return None
            match = _DROP.fullmatch(sql.strip())
            if match:
                self._require(match.group(1))
                name = normalize(match.group(1))
                del self.tables[name]
                self.ddl.pop(name, None)
                self.columns.pop(name, None)
                return None
            match = _RENAME.fullmatch(sql.strip())
            if match:
                old = normalize(match.group(1))
                self._require(old)
                prefix = old.rsplit(".", 1)[0] + "." if "." in old else ""
                new = prefix + normalize(match.group(2))
                if new in self.tables:
                    raise RuntimeError(f'relation "{new}" already exists')
                self.tables[new] = self.tables.pop(old)
                self.ddl[new] = self.ddl.pop(old, "")
                self.columns[new] = self.columns.pop(old, [])
                return None
            match = _EMPTY_SELECT.fullmatch(sql.strip())
            if match:
                self._require(match.group(1))
                return list(self.columns.get(normalize(match.group(1)), []))
            match = _TRUNCATE.fullmatch(sql.strip())
            if match:
                self._require(match.group(1))
                self.tables[normalize(match.group(1))] = []
                return None
            raise RuntimeError(f"unsupported statement: {sql}")

    def _require(self, name: str) -> None:
        if normalize(name) not in self.tables:
            raise RuntimeError(f'relation "{normalize(name)}" does not exist')


class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self.rowcount = -1
        self.description = None
        self.closed = False

    def execute(self, sql: str) -> None:
        if self.conn.autocommit:
            columns = self.conn.db.apply(sql)
            if columns is not None:
                self.description = [(name,) for name in columns]
        else:
            self.conn.pending.append(sql)

    def copy_expert(self, sql: str, stream) -> None:
        db = self.conn.db
        match = _COPY.match(sql)
        table = normalize(match.group(1))
        with db.lock:
            db.statements.append(sql)
        if db.copy_error is not None:
            raise db.copy_error
        if db.hang_copy:
            if db.ignore_cancel:
                db.release.wait()
            while not self.conn.cancelled.wait(0.01):
                pass
            raise QueryCanceled("canceling statement due to user request")
        lines = stream.read().splitlines(keepends=True)
        if table in db.fail_copy_once_for:
            db.fail_copy_once_for.discard(table)
            raise RuntimeError(f"COPY into {table} failed")
        if db.fail_copy_after_rows is not None and len(lines) > db.fail_copy_after_rows:
            raise RuntimeError("extra data after last expected column")
        with db.lock:
            if table not in db.tables:
                raise RuntimeError(f'relation "{table}" does not exist')
            db.tables[table].extend(lines)
        self.rowcount = len(lines)

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.autocommit = True
        self.closed = False
        self.pending: List[str] = []
        self.cancelled = threading.Event()
        self.commits = 0
        self.rollbacks = 0

    def cursor(self) -> FakeCursor:
        if self.closed:
            raise RuntimeError("connection already closed")
        return FakeCursor(self)

    def commit(self) -> None:
        # Statements of one transaction are applied all-or-nothing.
        db = self.db
        snapshot = (
            {k: list(v) for k, v in db.tables.items()},
            dict(db.ddl),
            {k: list(v) for k, v in db.columns.items()},
        )
        try:
            for sql in self.pending:
                self.db.apply(sql)
        except Exception:
            with db.lock:
                db.tables, db.ddl, db.columns = snapshot
            raise
        finally:
            self.pending = []
        self.commits += 1

    def rollback(self) -> None:
        self.pending = []
        self.rollbacks += 1

    def cancel(self) -> None:
        self.cancelled.set()

    def close(self) -> None:
        self.closed = True
        if self.db.fail_close:
            raise RuntimeError("close failed")

