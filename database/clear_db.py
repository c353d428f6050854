# clear_db.py: remove every saved session from the sessions table
import argparse
import sqlite3


def clear_sessions(db_path):
    """Delete every stored session. Returns the number of rows removed."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("DELETE FROM sessions")
    removed = cursor.rowcount

    conn.commit()
    conn.close()
    return removed


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Remove all saved sessions.")
    ap.add_argument("--db", default="database/session_log.db", help="Path to the sqlite database file")
    args = ap.parse_args()

    removed = clear_sessions(args.db)
    print(f"Session history cleared ({removed} removed).")
