# create_db.py - create missing tables without touching existing data
from rastuci.db import engine, init_db

init_db()
print("DB ready at:", engine.url)
