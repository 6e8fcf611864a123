"""Signal engine application: clients, storage, services and API."""
