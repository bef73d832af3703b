"""Lead records: storage, public listing, and admin fee actions."""
