"""Entry point — run with: python -m marketlens.main"""
import uvicorn

from marketlens.api.v1.app import app  # noqa: F401

if __name__ == "__main__":
    uvicorn.run("marketlens.main:app", host="0.0.0.0", port=8080, reload=True)
