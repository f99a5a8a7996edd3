#For every metrics update, the batch runner calls log_simulation_turn() to record KPIs.

import sqlite3

DEFAULT_DB_PATH = "ecosim.db"

#Function init_db: sets up the database and table
def init_db(db_path=DEFAULT_DB_PATH):

    conn = sqlite3.connect(db_path)  #connect to the KPI database
    c = conn.cursor() # create cursor object let us run SQL commands
    c.execute("""
        CREATE TABLE IF NOT EXISTS kpis (
            tick INTEGER PRIMARY KEY,
            gdp REAL,
            unemployment_rate REAL,
            gini REAL,
            cpi REAL,
            inflation REAL,
            population INTEGER,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    conn.commit()
    conn.close()

# A re-run over the same file replaces rows for ticks it reaches again
def log_simulation_turn(tick, gdp, unemployment_rate, gini, cpi, inflation, population,
                        db_path=DEFAULT_DB_PATH):
    conn = sqlite3.connect(db_path)
    c = conn.cursor()
    c.execute("""
        INSERT OR REPLACE INTO kpis (tick, gdp, unemployment_rate, gini, cpi, inflation, population)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (tick, gdp, unemployment_rate, gini, cpi, inflation, population))
    conn.commit()
    conn.close()

def log_metrics(metrics, db_path=DEFAULT_DB_PATH):
    """Record one row from a Metrics object."""
    log_simulation_turn(
        metrics.tick,
        metrics.gdp,
        metrics.unemployment,
        metrics.gini,
        metrics.cpi,
        metrics.inflation,
        metrics.population,
        db_path=db_path,
    )
