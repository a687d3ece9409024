"""HTTP surface. Import ``authgrid.api.web`` directly; it pulls in FastAPI."""
