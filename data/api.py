import logging
import sqlite3

from flask import Flask, jsonify, request

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Define the database path
app.config.setdefault("DATABASE", "ecosim.db")

def get_db_conn():
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(app.config["DATABASE"])
    # Return rows as dictionaries instead of tuples
    conn.row_factory = sqlite3.Row
    return conn

@app.route("/api/latest_stats")
def latest_stats():
    """Provides the most recent KPI row from the database."""
    conn = None
    try:
        conn = get_db_conn()
        cursor = conn.cursor()

        # Query for the row with the highest 'tick' value
        cursor.execute("SELECT * FROM kpis ORDER BY tick DESC LIMIT 1")

        latest_row = cursor.fetchone()

        if latest_row:
            return jsonify(dict(latest_row))
        else:
            # Handle case where the table is empty
            return jsonify({"error": "No data found in kpis table"}), 404

    except sqlite3.Error as e:
        logger.error(f"Database error: {e}")
        return jsonify({"error": "Database error occurred"}), 500
    finally:
        if conn:
            conn.close()

@app.route("/api/history")
def history():
    """Provides KPI rows in tick order, optionally limited to the most recent N."""
    limit = request.args.get("limit", default=200, type=int)
    if limit is None or limit <= 0:
        return jsonify({"error": "limit must be a positive integer"}), 400

    conn = None
    try:
        conn = get_db_conn()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM kpis ORDER BY tick DESC LIMIT ?", (limit,))
        rows = [dict(row) for row in cursor.fetchall()]
        rows.reverse()
        return jsonify(rows)

    except sqlite3.Error as e:
        logger.error(f"Database error: {e}")
        return jsonify({"error": "Database error occurred"}), 500
    finally:
        if conn:
            conn.close()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting Flask server at http://127.0.0.1:5000/api/latest_stats")
    app.run(debug=True, port=5000)
