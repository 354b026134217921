import sqlite3
import threading

import config

EVENT_COLUMNS = (
    "id", "title", "description", "date", "time", "location", "category", "capacity", "price",
    "organizer_id", "organizer_name", "organizer_email", "status", "registered_count", "created_at",
)
ATTENDEE_COLUMNS = ("id", "event_id", "name", "email", "phone", "registration_date", "status", "user_type")
UPDATABLE_EVENT_COLUMNS = ("title", "description", "date", "time", "location", "category", "price", "status")


class Database:
    def __init__(self, db_name="events.db"):
        """
        Initialize SQLite database connection.
        Rows come back as plain dicts; EventManager and RegistrationManager turn them into models.
        """
        self.conn = sqlite3.connect(db_name, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.lock = threading.Lock()
        self.create_tables()

    def create_tables(self):
        """Create database tables with appropriate indexes."""
        cursor = self.conn.cursor()
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                password TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        ''')
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                date TEXT NOT NULL,
                time TEXT NOT NULL,
                location TEXT NOT NULL,
                category TEXT NOT NULL,
                capacity INTEGER NOT NULL CHECK(capacity > 0),
                price REAL NOT NULL DEFAULT 0 CHECK(price >= 0),
                organizer_id TEXT NOT NULL,
                organizer_name TEXT NOT NULL,
                organizer_email TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('upcoming', 'ongoing', 'completed')),
                registered_count INTEGER NOT NULL DEFAULT 0 CHECK(registered_count >= 0),
                created_at TEXT NOT NULL
            )
        ''')
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS attendees (
                id TEXT PRIMARY KEY,
                event_id TEXT NOT NULL,
                name TEXT NOT NULL,
                email TEXT NOT NULL COLLATE NOCASE,
                phone TEXT,
                registration_date TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('confirmed', 'waitlist')),
                user_type TEXT NOT NULL CHECK(user_type IN ('participant', 'organizer')),
                FOREIGN KEY (event_id) REFERENCES events(id),
                UNIQUE (event_id, email)
            )
        ''')
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS auth_sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                revoked INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (user_id) REFERENCES users(id)
            )
        ''')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_events_organizer_id ON events(organizer_id)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_attendees_event_id ON attendees(event_id)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_attendees_email ON attendees(email)')
        self.conn.commit()

    # -------------------------------
    # Events
    # -------------------------------
    def add_event(self, event):
        """Add an event row. Raises sqlite3.IntegrityError on a taken id or a failed constraint."""
        row = dict(event)
        with self.lock, self.conn:
            self.conn.execute(f'''
                INSERT INTO events ({", ".join(EVENT_COLUMNS)})
                VALUES ({", ".join("?" for _ in EVENT_COLUMNS)})
            ''', tuple(row[c] for c in EVENT_COLUMNS))

    def get_event(self, event_id):
        """Retrieve an event by ID."""
        row = self.conn.execute('SELECT * FROM events WHERE id = ?', (event_id,)).fetchone()
        return dict(row) if row else None

    def list_events(self):
        """Retrieve all events in insertion order."""
        rows = self.conn.execute('SELECT * FROM events ORDER BY rowid').fetchall()
        return [dict(r) for r in rows]

    def list_events_by_organizer(self, organizer_id):
        rows = self.conn.execute(
            'SELECT * FROM events WHERE organizer_id = ? ORDER BY rowid', (organizer_id,)
        ).fetchall()
        return [dict(r) for r in rows]

    def list_events_for_attendee(self, email):
        """Events the given email holds a registration for."""
        rows = self.conn.execute('''
            SELECT e.* FROM events e
            JOIN attendees a ON a.event_id = e.id
            WHERE a.email = ?
            ORDER BY e.rowid
        ''', (email,)).fetchall()
        return [dict(r) for r in rows]

    def update_event(self, event_id, **fields):
        """Update an event's details. Counters and ownership columns are not accepted."""
        updates = {k: v for k, v in fields.items() if k in UPDATABLE_EVENT_COLUMNS and v is not None}
        if not updates:
            return self.get_event(event_id) is not None
        set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
        values = list(updates.values()) + [event_id]
        with self.lock, self.conn:
            cursor = self.conn.execute(f'UPDATE events SET {set_clause} WHERE id = ?', values)
        return cursor.rowcount > 0

    # -------------------------------
    # Attendees
    # -------------------------------
    def _refresh_registered_count(self, cursor, event_id):
        """The only writer of events.registered_count."""
        cursor.execute('''
            UPDATE events
            SET registered_count = (SELECT COUNT(*) FROM attendees WHERE event_id = ?)
            WHERE id = ?
        ''', (event_id, event_id))

    def register_attendee(self, attendee, decide_status):
        """
        Insert a registration and refresh the event counter in one transaction.

        decide_status(capacity, registered_count) picks the attendee status from the
        count before insertion. Returns the stored row, or None if the event is missing.
        Raises sqlite3.IntegrityError when the email is already registered.
        """
        row = dict(attendee)
        with self.lock, self.conn:
            cursor = self.conn.cursor()
            cursor.execute('SELECT capacity, registered_count FROM events WHERE id = ?', (row["event_id"],))
            event = cursor.fetchone()
            if event is None:
                return None
            row["status"] = decide_status(event["capacity"], event["registered_count"])
            cursor.execute(f'''
                INSERT INTO attendees ({", ".join(ATTENDEE_COLUMNS)})
                VALUES ({", ".join("?" for _ in ATTENDEE_COLUMNS)})
            ''', tuple(row[c] for c in ATTENDEE_COLUMNS))
            self._refresh_registered_count(cursor, row["event_id"])
        return row

    def cancel_attendee(self, event_id, email):
        """Delete the registration(s) of an email for an event. Returns the number removed."""
        with self.lock, self.conn:
            cursor = self.conn.cursor()
            cursor.execute('DELETE FROM attendees WHERE event_id = ? AND email = ?', (event_id, email))
            removed = cursor.rowcount
            self._refresh_registered_count(cursor, event_id)
        return removed

    def get_attendee(self, event_id, email):
        row = self.conn.execute(
            'SELECT * FROM attendees WHERE event_id = ? AND email = ?', (event_id, email)
        ).fetchone()
        return dict(row) if row else None

    def list_attendees_for_event(self, event_id):
        """Retrieve all attendees for an event in registration order."""
        rows = self.conn.execute(
            'SELECT * FROM attendees WHERE event_id = ? ORDER BY rowid', (event_id,)
        ).fetchall()
        return [dict(r) for r in rows]

    def list_attendees_by_email(self, email):
        rows = self.conn.execute('SELECT * FROM attendees WHERE email = ? ORDER BY rowid', (email,)).fetchall()
        return [dict(r) for r in rows]

    def count_attendees_by_status(self, event_ids):
        """Totals per attendee status across the given events."""
        counts = {"confirmed": 0, "waitlist": 0}
        if not event_ids:
            return counts
        placeholders = ", ".join("?" for _ in event_ids)
        rows = self.conn.execute(
            f'SELECT status, COUNT(*) FROM attendees WHERE event_id IN ({placeholders}) GROUP BY status',
            tuple(event_ids),
        ).fetchall()
        for status, count in rows:
            counts[status] = count
        return counts

    # -------------------------------
    # Users and auth sessions
    # -------------------------------
    def add_user(self, user):
        """Add a user to the database."""
        with self.lock, self.conn:
            self.conn.execute('''
                INSERT INTO users (id, name, email, password, created_at)
                VALUES (?, ?, ?, ?, ?)
            ''', (user.id, user.name, user.email, user.password, user.created_at.isoformat()))

    def get_user(self, user_id):
        row = self.conn.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()
        return dict(row) if row else None

    def get_user_by_email(self, email):
        """Retrieve a user by email."""
        row = self.conn.execute('SELECT * FROM users WHERE email = ?', (email,)).fetchone()
        return dict(row) if row else None

    def add_auth_session(self, session):
        with self.lock, self.conn:
            self.conn.execute('''
                INSERT INTO auth_sessions (id, user_id, expires_at, revoked)
                VALUES (?, ?, ?, ?)
            ''', (session.id, session.user_id, session.expires_at.isoformat(), int(session.revoked)))

    def get_auth_session(self, session_id):
        row = self.conn.execute('SELECT * FROM auth_sessions WHERE id = ?', (session_id,)).fetchone()
        return dict(row) if row else None

    def revoke_auth_session(self, session_id):
        with self.lock, self.conn:
            cursor = self.conn.execute('UPDATE auth_sessions SET revoked = 1 WHERE id = ?', (session_id,))
        return cursor.rowcount > 0

    def close(self):
        """Close the database connection."""
        self.conn.close()


_db = None


def get_db() -> Database:
    """FastAPI dependency returning the process-wide database."""
    global _db
    if _db is None:
        _db = Database(config.DATABASE_PATH)
    return _db


def close_db():
    global _db
    if _db is not None:
        _db.close()
        _db = None
