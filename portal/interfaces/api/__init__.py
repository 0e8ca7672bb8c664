"""FastAPI routers, schemas and dependencies."""
