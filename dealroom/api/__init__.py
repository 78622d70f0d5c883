"""DEALROOM API: FastAPI service for the deal data room engine."""
