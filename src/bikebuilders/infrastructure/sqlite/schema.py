"""
SQLite schema for the garage dataset.

Six tables:
- Customers, Vehicles, Services, ServiceParts (the ownership graph)
- CommonServices (price catalog, independent of the graph)
- UserInfo (single garage profile row)

Table and column names match the files exported by earlier releases,
so they must not be renamed.

Schema Version: 2 (version 1 databases lack Vehicles.ReminderDays)
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SCHEMA_TABLES = """
CREATE TABLE IF NOT EXISTS Customers (
    CustomerID INTEGER PRIMARY KEY AUTOINCREMENT,
    Name TEXT NOT NULL,
    Phone TEXT UNIQUE,
    Address TEXT,
    Email TEXT UNIQUE
);

CREATE TABLE IF NOT EXISTS Vehicles (
    RegNumber TEXT PRIMARY KEY COLLATE NOCASE,
    CustomerID INTEGER NOT NULL,
    VehicleName TEXT,
    LastServiceDate TEXT,
    LastReading INTEGER,
    ReminderDays INTEGER DEFAULT 90,
    FOREIGN KEY (CustomerID) REFERENCES Customers(CustomerID)
);

CREATE TABLE IF NOT EXISTS Services (
    ServiceLogID INTEGER PRIMARY KEY AUTOINCREMENT,
    RegNumber TEXT NOT NULL,
    TimestampKey INTEGER NOT NULL,
    CurrentReading INTEGER,
    TotalAmount REAL DEFAULT 0,
    PaymentStatus TEXT DEFAULT 'Pending',
    PaidAmount REAL DEFAULT 0,
    Status TEXT DEFAULT 'In Progress',
    CompletedOn TEXT,
    OutstandingBalance REAL DEFAULT 0,
    StartedOn TEXT,
    FOREIGN KEY (RegNumber) REFERENCES Vehicles(RegNumber)
);

CREATE TABLE IF NOT EXISTS ServiceParts (
    PartLogID INTEGER PRIMARY KEY AUTOINCREMENT,
    ServiceLogID INTEGER NOT NULL,
    PartName TEXT NOT NULL,
    Amount REAL NOT NULL,
    FOREIGN KEY (ServiceLogID) REFERENCES Services(ServiceLogID)
);

CREATE TABLE IF NOT EXISTS CommonServices (
    ServiceID INTEGER PRIMARY KEY AUTOINCREMENT,
    ServiceName TEXT NOT NULL UNIQUE,
    DefaultAmount REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS UserInfo (
    UserID INTEGER PRIMARY KEY CHECK (UserID = 1),
    Name TEXT,
    Email TEXT,
    PhoneNumber TEXT,
    GarageName TEXT,
    Address TEXT
);

CREATE TABLE IF NOT EXISTS schema_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_services_status ON Services(Status, TimestampKey);
CREATE INDEX IF NOT EXISTS idx_services_reg ON Services(RegNumber);
CREATE INDEX IF NOT EXISTS idx_service_parts_service ON ServiceParts(ServiceLogID);
"""

# Restore deletes children first and inserts parents first.
DELETE_ORDER = ("ServiceParts", "Services", "Vehicles", "Customers", "CommonServices")


def _column_names(connection: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in connection.execute(f"PRAGMA table_info({table})")}


def initialize_schema(connection: sqlite3.Connection) -> None:
    """
    Create tables if they don't exist and upgrade older databases.

    Safe to call multiple times. Guarantees the UserInfo singleton row.

    Args:
        connection: Open SQLite connection
    """
    connection.executescript(SCHEMA_TABLES)

    # v1 databases were created before reminder intervals existed
    if "ReminderDays" not in _column_names(connection, "Vehicles"):
        connection.execute("ALTER TABLE Vehicles ADD COLUMN ReminderDays INTEGER DEFAULT 90")
        logger.info("Upgraded Vehicles table: added ReminderDays")

    connection.execute(
        """
        INSERT OR IGNORE INTO UserInfo (UserID, Name, Email, PhoneNumber, GarageName, Address)
        VALUES (1, '', '', '', '', '')
    """
    )

    connection.execute(
        """
        INSERT OR REPLACE INTO schema_meta (key, value)
        VALUES ('version', ?)
    """,
        (str(SCHEMA_VERSION),),
    )

    connection.commit()
    logger.info("Database schema initialized (version %d)", SCHEMA_VERSION)
